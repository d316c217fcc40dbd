import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from dynamic_functions.core.function_manager import FunctionManager
from dynamic_functions.models.db_model import Base, FunctionModel


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Create a fresh SQLite database with the functions table for each test."""
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'functions.db'}"
    engine = create_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session_factory(engine):
    """Async-generator session factory, as FunctionManager expects."""
    async_session_factory = async_sessionmaker(
        bind=engine, expire_on_commit=False, class_=AsyncSession
    )

    async def get_session_factory():
        async with async_session_factory() as session:
            yield session

    return get_session_factory


@pytest_asyncio.fixture
async def function_manager(db_session_factory, tmp_path):
    """Fixture to initialize and return a FunctionManager instance."""
    module_dir = tmp_path / "modules"
    module_dir.mkdir()
    manager = FunctionManager(
        db_session_factory=db_session_factory,
        function_model=FunctionModel,
        tmp_dir=str(module_dir),
    )
    await manager.initialize()
    return manager
