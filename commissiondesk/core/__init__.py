"""Pure domain helpers shared by routers and CRUD code."""
