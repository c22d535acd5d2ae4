from typing import Any, Dict, List, Optional


def success_response(message: str, data: Any = None) -> Dict[str, Any]:
    """Create a success response."""
    return {
        "success": True,
        "message": message,
        "data": data
    }


def error_response(error: str, details: Any = None) -> Dict[str, Any]:
    """Create an error response."""
    response = {
        "success": False,
        "error": error
    }
    if details is not None:
        response["details"] = details
    return response


def pagination_info(limit: int, offset: int, items: Optional[List[Any]]) -> Dict[str, Any]:
    """Limit/offset pagination block; a full page means more may follow."""
    return {
        "limit": limit,
        "offset": offset,
        "hasMore": len(items or []) == limit
    }
