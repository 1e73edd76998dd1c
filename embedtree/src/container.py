from config import AppConfig
from discord_sync import MessageRenderer
from open_telemetry import Telemetry


class Container:
    def __init__(self, config: AppConfig | None = None, telemetry: Telemetry | None = None):
        self.config = config or AppConfig()

        self.telemetry = telemetry or Telemetry(
            service_name=self.config.otel_service_name,
            endpoint=self.config.otel_exporter_otlp_endpoint,
        )

        # Needs the bot client to be set once it has logged in
        self.message_renderer = MessageRenderer(
            telemetry=self.telemetry,
            content_separator=self.config.content_separator,
            max_tries=self.config.sync_max_tries,
        )
