from supabase import create_client, Client
from core.config import settings, logger
from typing import Optional
import asyncio
from functools import partial

# Uploads always go through the service role client
_supabase_client: Optional[Client] = None
_init_lock = asyncio.Lock()

async def get_supabase_client() -> Client:
    """
    Initializes and returns the service-role Supabase client (safe for concurrent callers).
    Raises ValueError when the URL or service key is not configured.
    """
    global _supabase_client

    if _supabase_client is None:
        async with _init_lock:
            # Double check after acquiring lock
            if _supabase_client is None:
                url = settings.SUPABASE_URL
                key = settings.SUPABASE_SERVICE_KEY

                if url and key:
                    logger.info("Initializing Supabase client with service role key...")
                    try:
                        # Run create_client in a thread pool since it's synchronous
                        loop = asyncio.get_running_loop()
                        _supabase_client = await loop.run_in_executor(
                            None,
                            partial(create_client, url, key)
                        )
                        logger.info("Supabase client with service role key initialized successfully.")
                    except Exception as e:
                        logger.error(f"Failed to initialize Supabase client: {e}", exc_info=True)
                        raise RuntimeError(f"Failed to initialize Supabase client: {e}")
                else:
                    logger.error("Supabase URL or Service Role Key not configured. Cannot create client.")
                    raise ValueError("Supabase URL or Service Role Key not configured")

    return _supabase_client


def reset_supabase_client() -> None:
    """Drops the cached client (used on shutdown and by tests)."""
    global _supabase_client
    _supabase_client = None
