from .gateway_client import GatewayClient
from .network_monitor import ConnectivityChecker, NetworkMonitor
from .recording_controller import ControllerState, RecordingController
from .scheduler import LoopScheduler, Scheduler

__all__ = [
    "ConnectivityChecker",
    "ControllerState",
    "GatewayClient",
    "LoopScheduler",
    "NetworkMonitor",
    "RecordingController",
    "Scheduler",
]
