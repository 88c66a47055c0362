import logging
from concurrent.futures import Executor
from dataclasses import dataclass

import requests

from ecoconnect_client.cache import keys
from ecoconnect_client.cache.query_cache import QueryCache
from ecoconnect_client.config import AppConfig, load_config
from ecoconnect_client.http.client import ApiClient
from ecoconnect_client.notifications import Notifier
from ecoconnect_client.storage.kv_store import KeyValueStore
from ecoconnect_client.storage.previews import PreviewRegistry
from ecoconnect_client.views.account import AccountView
from ecoconnect_client.views.admin import AdminView
from ecoconnect_client.views.assistant import AssistantView
from ecoconnect_client.views.billing import BillingView
from ecoconnect_client.views.company import CompanyProfileView
from ecoconnect_client.views.dashboard import DashboardView
from ecoconnect_client.views.directory import DirectoryView
from ecoconnect_client.views.imports import ImportView
from ecoconnect_client.views.messaging import MessagingView
from ecoconnect_client.views.suggestions import SuggestionsView

logger = logging.getLogger(__name__)


@dataclass
class EcoConnectApp:
    """One client, one cache and one notifier shared by every view."""

    config: AppConfig
    token_store: KeyValueStore
    client: ApiClient
    cache: QueryCache
    notifier: Notifier
    account: AccountView
    dashboard: DashboardView
    directory: DirectoryView
    suggestions: SuggestionsView
    company: CompanyProfileView
    assistant: AssistantView
    messaging: MessagingView
    imports: ImportView
    admin: AdminView
    billing: BillingView

    @classmethod
    def from_config(
        cls,
        config: AppConfig | None = None,
        session: requests.Session | None = None,
        executor: Executor | None = None,
    ) -> "EcoConnectApp":
        config = config or load_config()
        token_store = KeyValueStore(config.token_store_path)
        client = ApiClient(
            config.api_base_url,
            token_store,
            timeout=config.api_timeout,
            session=session,
        )
        cache = QueryCache(
            max_entries=config.cache_max_entries,
            default_stale_time=config.stale_seconds,
            default_retry=config.query_retry,
            executor=executor,
        )
        notifier = Notifier()

        account = AccountView(
            client,
            cache,
            notifier,
            token_store,
            previews=PreviewRegistry(),
            avatar_max_bytes=config.avatar_max_bytes,
            avatar_timeout=config.avatar_timeout,
        )
        # a rejected token anywhere ends the local session
        cache.on_error = account.handle_auth_failure

        def current_user_id() -> str | None:
            user = cache.get(keys.auth_user()) or {}
            user_id = (user.get("user") or {}).get("id")
            return str(user_id) if user_id is not None else None

        logger.debug("EcoConnect client wired for %s", config.api_base_url)
        return cls(
            config=config,
            token_store=token_store,
            client=client,
            cache=cache,
            notifier=notifier,
            account=account,
            dashboard=DashboardView(client, cache),
            directory=DirectoryView(client, cache),
            suggestions=SuggestionsView(client, cache, notifier),
            company=CompanyProfileView(client, cache, notifier),
            assistant=AssistantView(
                client, cache, notifier, poll_interval=config.poll_interval
            ),
            messaging=MessagingView(client, cache, notifier, current_user_id),
            imports=ImportView(
                client, cache, notifier, upload_timeout=config.upload_timeout
            ),
            admin=AdminView(client, cache, notifier),
            billing=BillingView(client, cache, notifier),
        )
