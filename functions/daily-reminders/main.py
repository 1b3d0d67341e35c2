import hmac
import logging
import functions_framework
from reminders import get_engine, load_config, send_daily_reminders

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@functions_framework.http
def daily_reminders(request):
    """
    Triggered once a day by Cloud Scheduler with a shared bearer secret.
    """
    expected = f"Bearer {load_config('CRON_SECRET')}"
    provided = request.headers.get("Authorization", "")
    if not load_config("CRON_SECRET") or not hmac.compare_digest(provided, expected):
        return {"error": "Unauthorized"}, 401

    try:
        return send_daily_reminders(get_engine()), 200
    except Exception:
        logger.error("Daily email run failed", exc_info=True)
        return {"error": "Email automation failed"}, 500
