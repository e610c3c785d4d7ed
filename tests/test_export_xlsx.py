from datetime import datetime
from io import BytesIO

import pandas as pd

from commissiondesk import crud
from commissiondesk.exporting.xlsx import export_commission_workbook


def test_workbook_sheets_cover_live_figures(db_session, make_user, make_campaign, make_order):
    alice = make_user("alice", commission_rate=10)
    kept = make_campaign(alice, title="Kept", start_date=datetime(2025, 3, 7, 9, 0))
    dropped = make_campaign(alice, title="Dropped")
    make_order(kept, [{"name": "Serum", "quantity": 2, "base_price": "50"}])
    make_order(dropped)
    crud.soft_delete_campaign(db_session, dropped)

    sheets = pd.read_excel(BytesIO(export_commission_workbook(db_session)), sheet_name=None)

    assert list(sheets) == ["Campaigns", "SalesPersons", "Orders", "CommissionHistory"]
    assert sheets["Campaigns"]["title"].tolist() == ["Kept"]
    assert sheets["Campaigns"]["total_sales"].tolist() == [100.0]
    assert sheets["Campaigns"]["start_date"].tolist() == ["07/03/2025"]
    assert sheets["SalesPersons"]["username"].tolist() == ["alice"]
    assert sheets["SalesPersons"]["total_commission"].tolist() == [10.0]
    assert sheets["Orders"]["items"].tolist() == ["2 x Serum"]
    assert sheets["CommissionHistory"].empty


def test_export_endpoint_is_admin_only(client_as, make_user):
    admin = make_user("boss", role="admin")
    seller = make_user("alice", commission_rate=10)

    resp = client_as(admin).get("/api/dashboard/export-xlsx")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert "attachment" in resp.headers["content-disposition"]
    assert client_as(seller).get("/api/dashboard/export-xlsx").status_code == 403
