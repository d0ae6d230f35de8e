#!/usr/bin/env python3
"""One-time script to promote a user to ADMIN. Run on the server.

Usage:
    python demo/promote_admin.py <username>
"""
import asyncio
import sys
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from bankcards.config import settings
from bankcards.models.user import User, UserRole

async def promote(username: str):
    engine = create_async_engine(settings.DATABASE_URL)
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(User)
            .where(User.username == username)
            .values(role=UserRole.ADMIN)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()

asyncio.run(promote(sys.argv[1] if len(sys.argv) > 1 else "admin"))
