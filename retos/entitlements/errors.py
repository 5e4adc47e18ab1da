class EntitlementError(Exception):
    pass


class UnknownSkuError(EntitlementError):
    pass


class InvalidEmailError(EntitlementError):
    pass


class EntitlementNotFoundError(EntitlementError):
    pass
