from flask import Blueprint

cron_bp = Blueprint("cron", __name__)

from photomarket.blueprints.cron import views  # noqa: F401, E402
