from speechrelay.integrations.webhook import WebhookPoster

__all__ = ["WebhookPoster"]
