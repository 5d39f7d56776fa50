class CibulbError(Exception):
    pass


class AuthenticationError(CibulbError):
    pass


class StoreConnectionError(CibulbError):
    pass


class StoreOperationError(CibulbError):
    pass


class NotificationDeliveryError(CibulbError):
    def __init__(self, notifier: str, message: str):
        super().__init__(f"{notifier}: {message}")
        self.notifier = notifier


class IndicatorError(CibulbError):
    pass
