"""账号服务。"""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wsp_api.db.session import transaction
from wsp_api.exceptions import HttpErrors
from wsp_api.models.account import Account
from wsp_api.models.enums import AccountStatus

logger = logging.getLogger("wsp_api.services.accounts")


def normalize_email(value: str) -> str:
    """标准化邮箱字段（去空格 + 小写）。"""
    return value.strip().lower()


def require_account(db: Session, account_id: UUID) -> Account:
    """读取账号，不存在时抛出 ACCOUNT_NOT_FOUND。"""
    account = db.get(Account, account_id)
    if account is None:
        raise HttpErrors.AccountNotFound()
    return account


def get_account_by_email(db: Session, email: str) -> Account | None:
    return db.execute(select(Account).where(Account.email == normalize_email(email))).scalar_one_or_none()


def build_account(
    db: Session,
    *,
    email: str,
    full_name: str | None = None,
    phone: str | None = None,
    is_super_admin: bool = False,
    account_id: UUID | None = None,
) -> Account:
    """在当前事务内新增账号（不提交）。"""
    normalized_email = normalize_email(email)
    if get_account_by_email(db, normalized_email) is not None:
        raise HttpErrors.Conflict(f"Account with email {normalized_email} already exists")

    account = Account(
        email=normalized_email,
        full_name=full_name.strip() if full_name else None,
        phone=phone,
        is_super_admin=is_super_admin,
        status=AccountStatus.ACTIVE,
    )
    if account_id is not None:
        account.id = account_id
    db.add(account)
    db.flush()
    return account


def create_account(
    db: Session,
    *,
    email: str,
    full_name: str | None = None,
    phone: str | None = None,
    is_super_admin: bool = False,
) -> Account:
    """创建账号并提交。"""
    with transaction(db):
        account = build_account(
            db,
            email=email,
            full_name=full_name,
            phone=phone,
            is_super_admin=is_super_admin,
        )
    logger.info("account created account_id=%s super_admin=%s", account.id, is_super_admin)
    return account


def update_account(
    db: Session,
    account_id: UUID,
    *,
    full_name: str | None = None,
    phone: str | None = None,
) -> tuple[Account, dict[str, object]]:
    """更新账号资料，返回账号与实际变更字段。"""
    with transaction(db):
        account = require_account(db, account_id)
        changes: dict[str, object] = {}
        if full_name is not None and full_name.strip() != account.full_name:
            account.full_name = full_name.strip()
            changes["full_name"] = account.full_name
        if phone is not None and phone != account.phone:
            account.phone = phone
            changes["phone"] = phone
        db.flush()
    return account, changes


def set_super_admin(db: Session, account_id: UUID, is_super_admin: bool) -> tuple[Account, bool]:
    """变更超级管理员标记，返回账号与变更前的值。"""
    with transaction(db):
        account = require_account(db, account_id)
        previous = account.is_super_admin
        account.is_super_admin = is_super_admin
        db.flush()
    logger.info("account role updated account_id=%s super_admin=%s->%s", account_id, previous, is_super_admin)
    return account, previous


def set_account_status(db: Session, account_id: UUID, status: AccountStatus) -> tuple[Account, str]:
    """变更账号生命周期状态，返回账号与变更前的状态。"""
    with transaction(db):
        account = require_account(db, account_id)
        previous = account.status
        account.status = AccountStatus(status)
        db.flush()
    logger.info("account status updated account_id=%s status=%s->%s", account_id, previous, status)
    return account, previous


def list_accounts(db: Session, *, page: int, limit: int) -> tuple[list[Account], int]:
    """按创建时间分页列出全部账号。"""
    total = db.execute(select(func.count()).select_from(Account)).scalar_one()
    accounts = (
        db.execute(
            select(Account)
            .order_by(Account.created_at, Account.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(accounts), int(total)
