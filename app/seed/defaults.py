"""
Default permission catalogue, groups and super admin (idempotent).
"""

from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import get_password_hash
from app.db.unit_of_work import run_in_transaction
from app.models.permission import Permission
from app.models.user import User
from app.models.user_group import UserGroup, UserGroupPermission

logger = get_logger(__name__)

DEFAULT_PERMISSIONS = [
    # user-management
    {"name": "users", "route": "/users", "description": "Manage system users", "module": "user-management"},
    {"name": "user-permissions", "route": "/user-permissions", "description": "Manage user permissions", "module": "user-management"},
    {"name": "user-groups", "route": "/user-groups", "description": "Manage user groups", "module": "user-management"},
    {"name": "permissions", "route": "/permissions", "description": "Manage system permissions", "module": "user-management"},
    {"name": "logs", "route": "/logs", "description": "Read access and error logs", "module": "user-management"},
    # content-management
    {"name": "categories", "route": "/categories", "description": "Manage product/service categories", "module": "content-management"},
    {"name": "products", "route": "/products", "description": "Manage products", "module": "content-management"},
    {"name": "services", "route": "/services", "description": "Manage services", "module": "content-management"},
    {"name": "blogs", "route": "/blogs", "description": "Manage blog posts and content", "module": "content-management"},
    {"name": "certifications", "route": "/certifications", "description": "Manage certifications", "module": "content-management"},
    {"name": "seo", "route": "/seo", "description": "Manage SEO metadata", "module": "content-management"},
    {"name": "cnc-quotes", "route": "/cnc-quotes", "description": "Manage CNC quote requests", "module": "content-management"},
    # website-management
    {"name": "website-projects", "route": "/website-projects", "description": "Manage website development projects", "module": "website-management"},
    {"name": "website-quotations", "route": "/quotations", "description": "Manage website project quotations", "module": "website-management"},
    # subscription-management
    {"name": "subscription-templates", "route": "/subscription-templates", "description": "Manage subscription plan templates", "module": "subscription-management"},
    {"name": "subscription-versions", "route": "/subscription-versions", "description": "Manage subscription plan versions", "module": "subscription-management"},
    # system
    {"name": "uploads", "route": "/uploads", "description": "Manage file uploads and media", "module": "system"},
    {"name": "dashboard", "route": "/dashboard", "description": "Access admin dashboard", "module": "system"},
    {"name": "reports", "route": "/reports", "description": "Generate and view system reports", "module": "system"},
]

DEFAULT_GROUPS = [
    {
        "name": "Content Manager",
        "description": "Manage content, categories and blogs",
        "permissions": {
            "categories": ["create", "edit"],
            "products": ["create", "edit"],
            "services": ["create", "edit"],
            "blogs": ["create", "edit", "delete"],
            "certifications": ["create", "edit"],
            "seo": ["edit"],
            "uploads": ["create"],
            "dashboard": ["view"],
        },
    },
    {
        "name": "Website Manager",
        "description": "Manage website projects and quotations",
        "permissions": {
            "website-projects": ["create", "edit"],
            "website-quotations": ["create", "edit"],
            "uploads": ["create"],
            "dashboard": ["view"],
        },
    },
    {
        "name": "Subscription Manager",
        "description": "Manage subscription plans and templates",
        "permissions": {
            "subscription-templates": ["create", "edit"],
            "subscription-versions": ["create", "edit"],
            "dashboard": ["view"],
        },
    },
    {
        "name": "User Manager",
        "description": "Manage users and their permissions",
        "permissions": {
            "users": ["create", "edit"],
            "user-permissions": ["create", "edit"],
            "user-groups": ["create", "edit"],
            "dashboard": ["view"],
        },
    },
    {
        "name": "Read Only",
        "description": "Read-only access to most content",
        "permissions": {
            name: ["view"]
            for name in (
                "categories", "products", "services", "blogs", "website-projects",
                "website-quotations", "subscription-templates", "subscription-versions", "dashboard",
            )
        },
    },
]


async def seed_permissions(db: AsyncSession) -> Dict[str, Permission]:
    """Create missing default permissions. Returns every permission by name."""
    result = await db.execute(select(Permission))
    permissions = {permission.name: permission for permission in result.scalars().all()}

    for data in DEFAULT_PERMISSIONS:
        if data["name"] in permissions:
            logger.info(f"Permission '{data['name']}' already exists, skipping.")
            continue
        permission = Permission(**data)
        db.add(permission)
        permissions[data["name"]] = permission
        logger.info(f"Permission '{data['name']}' created.")

    await db.flush()
    return permissions


async def seed_groups(db: AsyncSession, permissions: Dict[str, Permission]) -> None:
    """Create missing default groups. Existing groups are left as they are."""
    for data in DEFAULT_GROUPS:
        existing = await db.execute(select(UserGroup.id).filter(UserGroup.name == data["name"]))
        if existing.first():
            logger.info(f"Group '{data['name']}' already exists, skipping.")
            continue

        db.add(UserGroup(
            name=data["name"],
            description=data["description"],
            permissions=[
                UserGroupPermission(permission=permissions[name], granted_actions=actions)
                for name, actions in data["permissions"].items()
            ],
        ))
        logger.info(f"Group '{data['name']}' created.")

    await db.flush()


async def seed_super_admin(db: AsyncSession) -> None:
    """Create the configured super admin when SUPER_ADMIN_EMAIL/PASSWORD are set."""
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        logger.info("SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD not set, skipping super admin.")
        return

    existing = await db.execute(select(User.id).filter(User.email == settings.SUPER_ADMIN_EMAIL))
    if existing.first():
        logger.info(f"Super admin {settings.SUPER_ADMIN_EMAIL} already exists, skipping.")
        return

    db.add(User(
        name=settings.SUPER_ADMIN_NAME,
        email=settings.SUPER_ADMIN_EMAIL,
        password=get_password_hash(settings.SUPER_ADMIN_PASSWORD),
        role=settings.SUPERUSER_ROLE,
    ))
    await db.flush()
    logger.info(f"Super admin {settings.SUPER_ADMIN_EMAIL} created.")


async def seed_all(db: AsyncSession) -> None:
    async def work(session: AsyncSession) -> None:
        permissions = await seed_permissions(session)
        await seed_groups(session, permissions)
        await seed_super_admin(session)

    await run_in_transaction(db, work)
    logger.info("Default access data seeded.")
