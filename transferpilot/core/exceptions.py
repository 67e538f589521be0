# transferpilot/core/exceptions.py

class TransferPilotError(Exception):
    """Base exception for all TransferPilot errors"""

    def __init__(self, message, recoverable=True, recovery_steps=None, *args):
        self.recoverable = recoverable
        self.recovery_steps = recovery_steps or []
        super().__init__(message, *args)

class ConfigError(TransferPilotError):
    """Configuration related errors"""

    def __init__(self, message, config_key=None, invalid_value=None, expected_type=None, *args):
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.expected_type = expected_type
        recovery_steps = ["Check configuration file format", "Verify configuration values"]
        if config_key:
            recovery_steps.append(f"Validate the '{config_key}' setting")
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class ValidationError(TransferPilotError):
    """Invalid input handed to the engine (unknown policy, bad item kind, empty path)"""

    def __init__(self, message, field=None, invalid_value=None, *args):
        self.field = field
        self.invalid_value = invalid_value
        recovery_steps = ["Check the request parameters"]
        if field:
            recovery_steps.append(f"Provide a valid value for '{field}'")
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class StorageError(TransferPilotError):
    """Storage device related errors"""

    def __init__(self, message, path=None, device=None, *args, error_type=None):
        self.path = path
        self.device = device
        self.error_type = error_type
        recovery_steps = []

        # Infer error type from message if not provided
        if error_type is None:
            if "permission" in message.lower():
                error_type = "permission"
            elif "space" in message.lower():
                error_type = "space"
            elif any(word in message.lower() for word in ["mount", "volume", "drive"]):
                error_type = "mount"
            self.error_type = error_type

        if error_type == "permission":
            recovery_steps = [
                "Check file/directory permissions",
                "Verify user has necessary access rights"
            ]
        elif error_type == "space":
            recovery_steps = [
                "Free up space on the device",
                "Choose a larger destination volume"
            ]
        elif error_type == "mount":
            recovery_steps = [
                "Check if device is properly connected",
                "Try remounting the device"
            ]
        else:
            recovery_steps = [
                "Check device connection",
                "Ensure device is properly mounted"
            ]

        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class PathError(TransferPilotError):
    """A queued source path no longer exists or cannot be read"""

    def __init__(self, message, path=None, *args):
        self.path = path
        recovery_steps = [
            "Check that the source still exists",
            "Verify read permissions on the source"
        ]
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class TransferIoError(TransferPilotError):
    """Copy, write or delete failure on a single file"""

    def __init__(self, message, source=None, destination=None, *args, errno=None, side=None):
        self.source = source
        self.destination = destination
        self.errno = errno
        # "source" or "destination" when the failing side is known
        self.side = side
        recovery_steps = [
            "Verify source and destination paths",
            "Check file permissions",
            "Ensure sufficient space"
        ]
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class VerifyMismatchError(TransferIoError):
    """Post-copy size or digest check failed"""

    def __init__(self, message, source=None, destination=None, expected=None, actual=None, *args):
        super().__init__(message, source, destination, *args)
        self.expected = expected
        self.actual = actual
        self.recovery_steps = [
            "Verify source file integrity",
            "Retry the transfer",
            "Check the destination drive for errors"
        ]

class FatalSessionError(TransferPilotError):
    """Destination gone, session directory not creatable or not enough space"""

    def __init__(self, message, summary=None, *args, reason=None):
        self.summary = summary
        self.reason = reason
        if reason == "space":
            recovery_steps = [
                "Free up space on the destination",
                "Remove items from the queue",
                "Choose a larger destination volume"
            ]
        else:
            recovery_steps = [
                "Reconnect the destination drive",
                "Check write permissions on the destination",
                "Start the transfer again"
            ]
        super().__init__(message, recoverable=False, recovery_steps=recovery_steps, *args)

class CancellationError(TransferPilotError):
    """Raised by callers that surface a requested stop through their own layers"""

    def __init__(self, message="Transfer cancelled", summary=None, *args):
        self.summary = summary
        super().__init__(message, recoverable=True, recovery_steps=["Start the transfer again"], *args)

class StateError(TransferPilotError):
    """State transition related errors"""

    def __init__(self, message, current_state=None, target_state=None, *args):
        self.current_state = current_state
        self.target_state = target_state
        recovery_steps = [
            "Wait for the active transfer to finish",
            "Cancel the active transfer"
        ]
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class SessionBusyError(StateError):
    """A transfer was requested while another session is active"""
    pass

class DisplayError(TransferPilotError):
    """Display related errors"""

    def __init__(self, message, display_type=None, error_type=None, *args):
        self.display_type = display_type
        self.error_type = error_type
        recovery_steps = [
            "Check the terminal supports rich output",
            "Restart the application"
        ]
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)
