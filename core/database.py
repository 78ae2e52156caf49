from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import sessionmaker

from config import settings


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # session events (change capture) are attached to the sync maker, see sync.feed
    sync_maker = sessionmaker()
    return async_sessionmaker(bind, expire_on_commit=False, sync_session_class=sync_maker)


engine = create_async_engine(settings.DATABASE_URL, echo=False)
async_session = make_session_factory(engine)
