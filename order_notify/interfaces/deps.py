"""
API Dependencies.
"""

from fastapi import Depends, Request

from order_notify.application.container import Services
from order_notify.application.services.delivery_monitor import DeliveryMonitor
from order_notify.application.services.error_logger import ErrorLogger
from order_notify.application.services.notification_triggers import NotificationTriggerService
from order_notify.application.services.opt_out_registry import OptOutRegistry
from order_notify.application.services.queue_manager import QueueManager
from order_notify.application.services.template_renderer import TemplateRenderer


def get_services(request: Request) -> Services:
    """Services built by the application lifespan."""
    return request.app.state.services


def get_queue_manager(services: Services = Depends(get_services)) -> QueueManager:
    return services.queue


def get_trigger_service(services: Services = Depends(get_services)) -> NotificationTriggerService:
    return services.triggers


def get_opt_out_registry(services: Services = Depends(get_services)) -> OptOutRegistry:
    return services.opt_outs


def get_delivery_monitor(services: Services = Depends(get_services)) -> DeliveryMonitor:
    return services.monitor


def get_error_logger(services: Services = Depends(get_services)) -> ErrorLogger:
    return services.error_logger


def get_template_renderer(services: Services = Depends(get_services)) -> TemplateRenderer:
    return services.renderer
