from .gateway import EventBusGateway, MessageGateway, RecordingGateway

__all__ = ["MessageGateway", "EventBusGateway", "RecordingGateway"]
