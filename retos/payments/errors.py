class PaymentError(Exception):
    pass


class ProviderNotConfiguredError(PaymentError):
    pass


class InvalidSignatureError(PaymentError):
    pass


class InvalidPaymentPayloadError(PaymentError):
    pass
