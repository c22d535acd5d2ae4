import asyncio
import logging
from typing import Optional, Dict, Any
from whatsapp_bridge.database.supabase_client import get_supabase_client

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

logger = logging.getLogger(__name__)

SYSTEM_LOGS_TABLE = "system_logs"


async def log_to_database(source: str,
                          log_type: str,
                          message: str,
                          details: Optional[Dict[str, Any]] = None) -> None:
    """
    Log a message to both console and database.

    Never raises: a failing log write must not break the request that
    triggered it.

    Args:
        source: Log source (e.g., 'webhook', 'whatsapp', 'media', 'api')
        log_type: Log type (e.g., 'info', 'warning', 'error')
        message: Log message
        details: Optional additional details
    """
    try:
        # Log to console
        if log_type == "error":
            logger.error(f"[{source}] {message}")
        elif log_type == "warning":
            logger.warning(f"[{source}] {message}")
        else:
            logger.info(f"[{source}] {message}")

        # Log to database
        supabase = get_supabase_client()
        log_data = {
            "source": source,
            "log_type": log_type,
            "message": message,
            "details": details or {}
        }

        await asyncio.to_thread(supabase.table(SYSTEM_LOGS_TABLE).insert(log_data).execute)

    except Exception as e:
        logger.error(f"Failed to log to database: {str(e)}")


def get_logger(name: str):
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
