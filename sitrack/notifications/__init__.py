from .toasts import Toast, ToastAction, ToastCenter, TrackingToasts  # noqa: F401
