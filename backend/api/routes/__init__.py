"""api/routes — one APIRouter per concern."""
