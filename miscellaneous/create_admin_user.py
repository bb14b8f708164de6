#!/usr/bin/env python3
"""
Script to create an admin user for the Hotel Booking Platform.
"""

import asyncio
import os
import sys
from getpass import getpass

from sqlalchemy import select

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hotel_booking_platform.database import DatabaseManager
from hotel_booking_platform.models.user import User, UserRole
from hotel_booking_platform.utils.auth import get_password_hash


async def create_admin_user(db: DatabaseManager):
    """Create an admin user interactively."""
    print("Hotel Booking Platform - Admin User Creation")
    print("=" * 50)

    email = input("Enter admin email: ").strip().lower()
    if not email:
        print("Email is required!")
        return

    first_name = input("Enter first name: ").strip()
    last_name = input("Enter last name: ").strip()
    if not first_name or not last_name:
        print("First and last name are required!")
        return

    password = getpass("Enter password: ").strip()
    if len(password) < 8:
        print("Password must be at least 8 characters!")
        return

    if password != getpass("Confirm password: ").strip():
        print("Passwords do not match!")
        return

    async with db.session() as session:
        result = await session.execute(select(User).where(User.email == email))
        existing_user = result.scalar_one_or_none()

        if existing_user:
            print(f"User with email {email} already exists!")
            if input("Make existing user an active admin? (y/N): ").strip().lower() == "y":
                existing_user.role = UserRole.ADMIN
                existing_user.is_active = True
                print(f"User {email} is now an admin!")
            return

        admin_user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN,
            is_active=True,
        )
        session.add(admin_user)
        await session.flush()

        print("Admin user created successfully!")
        print(f"   Email: {admin_user.email}")
        print(f"   Name: {admin_user.full_name}")
        print(f"   ID: {admin_user.id}")


async def list_admin_users(db: DatabaseManager):
    """List all admin users."""
    print("Current Admin Users")
    print("=" * 30)

    async with db.session() as session:
        result = await session.execute(select(User).where(User.role == UserRole.ADMIN))
        admin_users = result.scalars().all()

        if not admin_users:
            print("No admin users found.")
        for user in admin_users:
            print(f"{user.email}")
            print(f"   Name: {user.full_name}")
            print(f"   Status: {'Active' if user.is_active else 'Inactive'}")
            print()


async def main():
    """Main function."""
    db = DatabaseManager()
    await db.initialize()
    try:
        if len(sys.argv) > 1 and sys.argv[1] == "list":
            await list_admin_users(db)
        else:
            await create_admin_user(db)
    finally:
        await db.close()


if __name__ == "__main__":
    print("Usage:")
    print("  python miscellaneous/create_admin_user.py        # Create new admin user")
    print("  python miscellaneous/create_admin_user.py list   # List existing admin users")
    print()

    asyncio.run(main())
