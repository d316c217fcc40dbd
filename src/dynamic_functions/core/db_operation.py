import logging

logger = logging.getLogger(__name__)


async def db_operation(
    db_session_factory: callable,
    operation: callable,  # Pass the db_access function
    *args,
    **kwargs,
):
    """
    Handles atomic execution of a database operation with transaction control.

    The operation runs inside a single session and is committed once it
    returns. Any error rolls the transaction back and is re-raised unchanged;
    retrying is left to the caller.

    Args:
        db_session_factory (Callable): Factory function to create a new DB session.
        operation (Callable): The database function to execute.
        *args: Positional arguments for the operation.
        **kwargs: Additional keyword arguments.

    Returns:
        Any: The result of the operation.
    """
    operation_name = (
        operation.__name__ if hasattr(operation, "__name__") else str(operation)
    )
    logger.debug(
        f"🔹 Starting DB operation: {operation_name} with args={args}, kwargs={kwargs}"
    )

    async for session in db_session_factory():
        try:
            # Call the actual DB function (without commit)
            result = await operation(session, *args, **kwargs)

            await session.commit()  # Commit at this level (atomicity)
            return result

        except Exception as e:
            await session.rollback()
            logger.error(f"❌ DB operation {operation_name} failed: {e}")
            raise

        finally:
            await session.close()  # Always close the session properly
            logger.debug(f"🔻 DB operation {operation_name} completed. Session closed.")

    raise RuntimeError(f"Session factory yielded no session for {operation_name}")
