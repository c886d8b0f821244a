"""
Wallet endpoints

Endpoints are plain functions so FastAPI runs them in its thread pool;
the processor blocks while it waits for an account lock.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from .dependencies import WalletSystem, get_wallet_system
from .schemas import ChargeRequest, CreateAccountRequest, TopUpRequest, TransactionRequest
from ..errors import (
    AccountNotFound, DuplicateReference, InsufficientBalance, StoreUnavailable, WalletError
)
from ..models import Account, TransactionKind, TransactionRecord, TransactionResult


router = APIRouter()


def _amount(value) -> str:
    return f"{value:.2f}"


def _account_data(account: Account) -> Dict[str, Any]:
    return {
        "account_id": account.id,
        "name": account.name,
        "email": account.email,
        "balance": _amount(account.balance),
    }


def _record_data(record: TransactionRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "type": record.kind.value,
        "amount": _amount(record.amount),
        "reference": record.reference,
        "description": record.description,
        "created_at": record.created_at.isoformat(),
    }


def _result_data(result: TransactionResult) -> Dict[str, Any]:
    return {
        "transaction_id": result.record.id,
        "account_id": result.account.id,
        "type": result.record.kind.value,
        "amount": _amount(result.record.amount),
        "new_balance": _amount(result.account.balance),
        "reference": result.record.reference,
        "description": result.record.description,
    }


def error_response(error: WalletError) -> JSONResponse:
    """Map a wallet failure to its HTTP response"""
    if isinstance(error, InsufficientBalance):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={
            "success": False,
            "message": "Insufficient balance",
            "error": error.code,
            "data": {
                "current_balance": float(error.current_balance),
                "requested_amount": float(error.requested_amount),
            }
        })

    if isinstance(error, AccountNotFound):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, DuplicateReference):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, StoreUnavailable):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    return JSONResponse(status_code=status_code, content={
        "success": False,
        "message": str(error),
        "error": error.code,
    })


def _process(system: WalletSystem, request: TransactionRequest, kind: TransactionKind):
    try:
        result = system.processor.process(
            account_id=request.account_id,
            amount=request.amount,
            reference=request.reference,
            kind=kind,
            description=request.description
        )
    except WalletError as e:
        return error_response(e)

    return {
        "success": True,
        "message": result.message,
        "data": _result_data(result)
    }


@router.post("/account", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Open a wallet account with a zero balance"""
    try:
        account = system.provisioner.create_account(name=request.name, email=request.email)
    except WalletError as e:
        return error_response(e)

    return {
        "success": True,
        "message": "Account created successfully",
        "data": _account_data(account)
    }


@router.post("/top-up")
def top_up(
    request: TopUpRequest,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Add funds to an account"""
    return _process(system, request, TransactionKind.TOP_UP)


@router.post("/charge")
def charge(
    request: ChargeRequest,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Deduct funds from an account"""
    return _process(system, request, TransactionKind.CHARGE)


@router.get("/balance/{account_id}")
def get_balance(
    account_id: str,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Get the current balance of an account"""
    try:
        account = system.processor.get_balance(account_id)
    except WalletError as e:
        return error_response(e)

    return {"success": True, "data": _account_data(account)}


@router.get("/transactions/{account_id}")
def get_transactions(
    account_id: str,
    page: int = 1,
    per_page: Optional[int] = None,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Get an account's transaction history, newest first"""
    try:
        result = system.processor.list_transactions(account_id, page=page, page_size=per_page)
    except WalletError as e:
        return error_response(e)

    pagination = result.pagination
    return {
        "success": True,
        "data": {
            "account_id": result.account.id,
            "transactions": [_record_data(record) for record in result.records],
            "pagination": {
                "current_page": pagination.current_page,
                "per_page": pagination.per_page,
                "total": pagination.total,
                "last_page": pagination.last_page,
            }
        }
    }


@router.get("/reconcile/{account_id}")
def reconcile(
    account_id: str,
    system: WalletSystem = Depends(get_wallet_system)
):
    """Check an account's balance against its transaction history"""
    try:
        report = system.processor.reconcile(account_id)
    except WalletError as e:
        return error_response(e)

    return {
        "success": True,
        "data": {
            "account_id": report["account_id"],
            "valid": report["valid"],
            "balance": _amount(report["balance"]),
            "ledger_total": _amount(report["ledger_total"]),
            "transaction_count": report["transaction_count"],
            "negative_prefixes": [
                {
                    "transaction_id": prefix["transaction_id"],
                    "reference": prefix["reference"],
                    "running_balance": _amount(prefix["running_balance"]),
                }
                for prefix in report["negative_prefixes"]
            ],
        }
    }
