class AgendaGrantError(Exception):
    pass


class AgendaGrantConfigError(AgendaGrantError):
    pass


class AgendaGrantTransportError(AgendaGrantError):
    pass


class AgendaGrantRejectedError(AgendaGrantError):
    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"grant failed: {status_code} {body}".strip())
