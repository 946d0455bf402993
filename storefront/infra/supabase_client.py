from typing import Optional
from supabase import create_client, Client, ClientOptions
from storefront import config


def create_supabase_client(
    url: Optional[str] = None,
    key: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Client:
    """
    Construit le client Supabase (clé service) utilisé par tout le processus.
    - Appelé une seule fois dans le lifespan; l'instance est ensuite injectée via get_db().
    - timeout: délai maximal d'une requête PostgREST (STORE_TIMEOUT_SECONDS par défaut).
    """
    url = url if url is not None else config.SUPABASE_URL
    key = key if key is not None else config.SUPABASE_SERVICE_KEY
    if not url or not key:
        raise RuntimeError("SUPABASE_URL/SUPABASE_SERVICE_KEY manquants")
    options = ClientOptions(
        postgrest_client_timeout=timeout if timeout is not None else config.STORE_TIMEOUT_SECONDS,
    )
    return create_client(url, key, options=options)
