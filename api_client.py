"""
HTTP client for the dashboard budgets API.

Maps budget store operations onto the REST endpoints:

    GET    dashboard/budgets                   -> 200, organized budgets
    POST   dashboard/budgets/budget/<id>       -> 201, new goal version
    PUT    dashboard/budgets/budget/<id>       -> 204, overwrite goal version
    POST   dashboard/budgets/category          -> 201, new subcategory
    PUT    dashboard/budgets/category/<id>     -> 204, update subcategory
    DELETE dashboard/budgets/category/<id>     -> 204, delete subcategory
    PUT    dashboard/budgets/category/ordering -> 204, reorder subcategories
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from budget_state import CategoryType
from budget_sync import BudgetStore
from exceptions import SynchronizationError
from goal_timeline import GoalRecord

logger = logging.getLogger(__name__)

BUDGETS_PATH = "dashboard/budgets"


class BudgetApiClient(BudgetStore):
    """
    Budget store backed by the dashboard REST API.

    Authentication is handled by the caller, who can pass a pre-configured
    ``requests.Session`` (cookies, headers).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        verify_ssl: bool = True,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the API client.

        Args:
            base_url: Server root, e.g. ``http://localhost:8000``
            timeout: Request timeout in seconds
            verify_ssl: Whether TLS certificates are verified
            session: Optional session to reuse
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")

    @classmethod
    def from_config(cls, config: Dict[str, Any], session: Optional[requests.Session] = None) -> "BudgetApiClient":
        """Build a client from the ``api`` configuration section."""
        api_config = config.get("api", {})
        return cls(
            base_url=api_config.get("base_url", "http://localhost:8000"),
            timeout=float(api_config.get("timeout", 10)),
            verify_ssl=bool(api_config.get("verify_ssl", True)),
            session=session
        )

    def _request(
        self,
        method: str,
        path: str,
        expected_status: int,
        payload: Optional[Dict[str, Any]] = None
    ) -> requests.Response:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                timeout=self.timeout,
                verify=self.verify_ssl
            )
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, url, exc)
            raise SynchronizationError(
                "Budget request could not be delivered",
                details={"method": method, "path": path},
                original_error=exc
            ) from exc

        if response.status_code != expected_status:
            details: Dict[str, Any] = {"method": method, "path": path, "status": response.status_code}
            errors = self._extract_errors(response)
            if errors:
                details["errors"] = errors
            logger.warning("%s %s returned %s (expected %s)", method, url, response.status_code, expected_status)
            raise SynchronizationError("Budget request was rejected", details=details)

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    @staticmethod
    def _extract_errors(response: requests.Response) -> Optional[Dict[str, Any]]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("errors")
        return None

    def fetch_budgets(self) -> List[Dict[str, Any]]:
        response = self._request("GET", BUDGETS_PATH, 200)
        body = response.json()
        data = body.get("data", body) if isinstance(body, dict) else body
        if isinstance(data, list):
            return data
        return list(flatten_organized_budgets(data))

    def create_goal(self, category_id: str, record: GoalRecord) -> None:
        self._request("POST", f"{BUDGETS_PATH}/budget/{category_id}", 201, record.to_payload())

    def overwrite_goal(self, category_id: str, record: GoalRecord) -> None:
        self._request("PUT", f"{BUDGETS_PATH}/budget/{category_id}", 204, record.to_payload())

    def create_category(
        self,
        category_type: CategoryType,
        name: str,
        order: int,
        record: GoalRecord
    ) -> str:
        payload = {
            "name": name,
            "type": category_type.value,
            "category_order": order,
            **record.to_payload(),
        }
        response = self._request("POST", f"{BUDGETS_PATH}/category", 201, payload)
        body = response.json()
        data = body.get("data", body)
        category_id = data.get("budget_category_id") if isinstance(data, dict) else None
        if not category_id:
            raise SynchronizationError(
                "Budget category creation returned no identifier",
                details={"path": f"{BUDGETS_PATH}/category"}
            )
        return str(category_id)

    def update_category(
        self,
        category_id: str,
        name: Optional[str] = None,
        category_type: Optional[CategoryType] = None,
        order: Optional[int] = None
    ) -> None:
        payload: Dict[str, Any] = {}
        if name is not None:
            payload["name"] = name
        if category_type is not None:
            payload["type"] = category_type.value
        if order is not None:
            payload["category_order"] = order
        if not payload:
            return
        self._request("PUT", f"{BUDGETS_PATH}/category/{category_id}", 204, payload)

    def delete_category(self, category_id: str) -> None:
        self._request("DELETE", f"{BUDGETS_PATH}/category/{category_id}", 204)

    def reorder_categories(self, category_ids: Sequence[str]) -> None:
        self._request("PUT", f"{BUDGETS_PATH}/category/ordering", 204, {"categories": list(category_ids)})


def flatten_organized_budgets(data: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    """
    Flatten the API's organized budgets payload into category/goal rows.

    The payload holds, per type, the main category id and goals plus a list
    of subcategories each with their own goals.
    """
    for category_type in CategoryType:
        section = data.get(category_type.value) or {}
        main_id = section.get("budget_category_id")
        for goal in section.get("goals", []):
            yield {
                "budget_category_id": main_id,
                "name": None,
                "type": category_type.value,
                "category_order": None,
                "goal": goal["goal"],
                "year": goal["year"],
                "month": goal["month"],
            }
        for category in section.get("categories", []):
            for goal in category.get("goals", []):
                yield {
                    "budget_category_id": category["budget_category_id"],
                    "name": category.get("name"),
                    "type": category.get("type", category_type.value),
                    "category_order": category.get("category_order"),
                    "goal": goal["goal"],
                    "year": goal["year"],
                    "month": goal["month"],
                }
