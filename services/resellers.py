"""Reseller accounts: summary list, user CRUD, seller details and contracts."""

import base64
import logging
from typing import Any, Dict, List, Optional

from services.dates import today_local
from services.parse_functions import ParseFunctionsClient, get_parse_client, result_dict, result_list
from services.report_pipeline import name_sort_key, run_report_pipeline

logger = logging.getLogger(__name__)

DEFAULT_CONTRACT_TITLE = "Contrato de Revenda"


def _client(client: Optional[ParseFunctionsClient]) -> ParseFunctionsClient:
    return client or get_parse_client()


def _reseller_id(row: Dict[str, Any]) -> str:
    return str(row.get("resellerId") or row.get("objectId") or "")


# ----------------------------------------------------------------
# Listing
# ----------------------------------------------------------------
def list_active_resellers(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    """Resellers that can receive stock, by name."""
    rows = result_list(_client(client).call("list-resellers", {}, session))
    active = [
        {"resellerId": _reseller_id(r), "fullname": r.get("fullname") or "", "email": r.get("email") or ""}
        for r in rows
        if isinstance(r, dict) and not r.get("isDeleted")
    ]
    return sorted(active, key=lambda r: name_sort_key(r["fullname"]))


def resellers_summary(session, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    """
    Every reseller with this month's sales count. The count comes from the
    admin-report pipeline (cancelled sales excluded) and is joined by full name,
    which is how the report mapping is keyed.
    """
    client = _client(client)
    rows = result_list(client.call("get-resellers-summarys", {}, session))
    today = today_local()
    _, view = run_report_pipeline(session, today.replace(day=1), today, client=client)
    counts = {row.name: row.total_sales for row in view.resellers}

    summary = []
    for r in rows:
        if not isinstance(r, dict):
            continue
        name = r.get("fullname") or ""
        summary.append(
            {
                "sellerId": _reseller_id(r),
                "sellerName": name,
                "email": r.get("email") or "",
                "isDeleted": bool(r.get("isDeleted")),
                "salesCount": counts.get(name, 0),
            }
        )
    return summary


def filter_resellers(rows: List[Dict[str, Any]], term: str = "", only_deleted: bool = False) -> List[Dict[str, Any]]:
    needle = (term or "").casefold()
    return [
        r
        for r in rows
        if needle in str(r.get("sellerName") or "").casefold() and bool(r.get("isDeleted")) == only_deleted
    ]


def sort_resellers(rows: List[Dict[str, Any]], by: str = "name", order: str = "asc") -> List[Dict[str, Any]]:
    if by == "sales":
        key = lambda r: int(r.get("salesCount") or 0)
    elif by == "name":
        key = lambda r: name_sort_key(str(r.get("sellerName") or ""))
    else:
        raise ValueError("sort must be 'name' or 'sales'")
    return sorted(rows, key=key, reverse=(order == "desc"))


# ----------------------------------------------------------------
# User CRUD
# ----------------------------------------------------------------
def create_user(fullname: str, email: str, password: str, client: Optional[ParseFunctionsClient] = None) -> Dict[str, Any]:
    if not (fullname or "").strip() or not (email or "").strip() or not password:
        raise ValueError("Name, e-mail and password are required.")
    # signup is anonymous: no session header.
    created = _client(client).call(
        "signup",
        {"fullname": fullname.strip(), "email": email.strip(), "password": password},
    )
    logger.info("[resellers] created user %s", email.strip())
    return result_dict(created)


def update_user(
    session,
    user_id: str,
    fullname: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    client: Optional[ParseFunctionsClient] = None,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"userId": user_id}
    if fullname:
        payload["fullname"] = fullname
    if email:
        payload["email"] = email
    if password:
        payload["password"] = password
    return result_dict(_client(client).call("update-user", payload, session))


def soft_delete_user(session, user_id: str, client: Optional[ParseFunctionsClient] = None) -> None:
    _client(client).call("soft-delete-user", {"userId": user_id}, session)
    logger.info("[resellers] soft-deleted user %s", user_id)


def restore_user(session, user_id: str, client: Optional[ParseFunctionsClient] = None) -> None:
    _client(client).call("restore-user", {"userId": user_id}, session)
    logger.info("[resellers] restored user %s", user_id)


# ----------------------------------------------------------------
# Seller details and contracts
# ----------------------------------------------------------------
def get_seller_details(session, seller_id: str, client: Optional[ParseFunctionsClient] = None) -> Dict[str, Any]:
    details = result_dict(_client(client).call("get-seller-details", {"sellerId": seller_id}, session))
    details.setdefault("contact", "")
    details.setdefault("address", "")
    return details


def update_seller_details(
    session,
    seller_id: str,
    contact: str = "",
    address: str = "",
    client: Optional[ParseFunctionsClient] = None,
) -> None:
    _client(client).call(
        "update-seller-details",
        {"sellerId": seller_id, "contact": contact or "", "address": address or ""},
        session,
    )


def list_contracts(session, seller_id: str, client: Optional[ParseFunctionsClient] = None) -> List[Dict[str, Any]]:
    return result_list(_client(client).call("get-seller-contracts", {"sellerId": seller_id}, session))


def upload_contract(
    session,
    seller_id: str,
    content: bytes,
    title: str = DEFAULT_CONTRACT_TITLE,
    client: Optional[ParseFunctionsClient] = None,
) -> List[Dict[str, Any]]:
    """Upload a contract file (sent base64-encoded) and return the refreshed contract list."""
    if not content:
        raise ValueError("Select a file to upload.")
    client = _client(client)
    client.call(
        "upload-seller-contract",
        {"sellerId": seller_id, "title": title or DEFAULT_CONTRACT_TITLE, "file": base64.b64encode(content).decode("ascii")},
        session,
    )
    logger.info("[contracts] uploaded %s bytes for seller %s", len(content), seller_id)
    return list_contracts(session, seller_id, client=client)


def rename_contract(session, contract_id: str, title: str, client: Optional[ParseFunctionsClient] = None) -> None:
    if not (title or "").strip():
        raise ValueError("Contract title cannot be empty.")
    _client(client).call("update-seller-contract", {"contractId": contract_id, "title": title.strip()}, session)


def delete_contract(session, contract_id: str, client: Optional[ParseFunctionsClient] = None) -> None:
    _client(client).call("delete-seller-contract", {"contractId": contract_id}, session)
    logger.info("[contracts] deleted %s", contract_id)
