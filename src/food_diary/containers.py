"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from food_diary.adapters.connectivity import (
    ConnectivityMonitor,
    InterfaceConnectivityMonitor,
)
from food_diary.adapters.http_client import HttpxRestClient
from food_diary.adapters.storage_image_uploader import (
    ImageUploader,
    StorageImageUploader,
)
from food_diary.adapters.supabase_profile_repository import (
    SupabaseDeviceProfileRepository,
)
from food_diary.config import Settings
from food_diary.domain.entries import FeedMode
from food_diary.services.entries import FoodEntryService, PersonalFeedStrategy
from food_diary.services.profiles import DeviceProfileService
from food_diary.services.search import DebouncedSearch


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    connectivity: ConnectivityMonitor
    http_client: HttpxRestClient
    image_uploader: ImageUploader
    profile_service: DeviceProfileService
    create_entry_service: Callable[[FeedMode], FoodEntryService]
    create_search: Callable[[FoodEntryService], DebouncedSearch]
    start_resources: Callable[[], None]
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    connectivity = InterfaceConnectivityMonitor(
        poll_interval=resolved_settings.connectivity_poll_interval
    )
    http_client = HttpxRestClient.create(resolved_settings, connectivity)
    image_uploader = StorageImageUploader(
        client=http_client,
        bucket=resolved_settings.food_images_bucket,
        public_base=resolved_settings.storage_public_url(
            resolved_settings.food_images_bucket
        ),
    )
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    profile_service = DeviceProfileService(
        SupabaseDeviceProfileRepository(
            supabase_client, table=resolved_settings.profiles_table
        )
    )

    def create_entry_service(feed_mode: FeedMode) -> FoodEntryService:
        return FoodEntryService(
            client=http_client,
            uploader=image_uploader,
            feed_mode=feed_mode,
            device_id=resolved_settings.device_id,
            table=resolved_settings.food_entries_table,
            personal_strategy=PersonalFeedStrategy(
                resolved_settings.personal_feed_strategy
            ),
            random_limit=resolved_settings.random_feed_limit,
            max_upload_size=resolved_settings.max_upload_size,
            progress_step_delay=resolved_settings.progress_step_delay,
        )

    def create_search(service: FoodEntryService) -> DebouncedSearch:
        return DebouncedSearch(service, delay=resolved_settings.search_debounce)

    def start_resources() -> None:
        connectivity.start()

    async def close_resources() -> None:
        connectivity.stop()
        await http_client.close()

    return AppContainer(
        settings=resolved_settings,
        connectivity=connectivity,
        http_client=http_client,
        image_uploader=image_uploader,
        profile_service=profile_service,
        create_entry_service=create_entry_service,
        create_search=create_search,
        start_resources=start_resources,
        close_resources=close_resources,
    )
