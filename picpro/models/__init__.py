from picpro.models.order import Order, OrderId, OrderStatus
from picpro.models.photo import UploadedPhoto
from picpro.models.headshot import GeneratedHeadshot
from picpro.models.generation_job import GenerationJob
from picpro.models.temp_upload import TempUpload
from picpro.models.payment_event import PaymentEvent

__all__ = [
    "Order",
    "OrderId",
    "OrderStatus",
    "UploadedPhoto",
    "GeneratedHeadshot",
    "GenerationJob",
    "TempUpload",
    "PaymentEvent",
]
