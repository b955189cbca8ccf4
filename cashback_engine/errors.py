from decimal import Decimal

from cashback_engine.services.geofence import format_distance


class CashbackError(Exception):
    status_code = 400
    default_message = "Erro ao processar transação"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"detail": self.message, "error": type(self).__name__}


class ValidationError(CashbackError):
    default_message = "Valor inválido para a transação"


class CustomerNotFoundError(CashbackError):
    status_code = 404
    default_message = "Cliente não encontrado"


class EntryNotFoundError(CashbackError):
    status_code = 404
    default_message = "Transação não encontrada"


class InsufficientBalanceError(CashbackError):
    def __init__(self, available: Decimal, requested: Decimal, expired: Decimal = Decimal("0.00")):
        self.available = available
        self.requested = requested
        self.expired = expired
        message = f"Saldo insuficiente para resgate. Disponível: R$ {available:.2f}"
        if expired > 0:
            message += f". Você possui R$ {expired:.2f} em cashback expirado"
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update(
            {
                "available": str(self.available),
                "requested": str(self.requested),
                "expired": str(self.expired),
            }
        )
        return payload


class OutOfRangeError(CashbackError):
    def __init__(self, store_name: str | None = None, distance_meters: float | None = None):
        self.store_name = store_name
        self.distance_meters = distance_meters
        message = "Você precisa estar em uma loja para registrar compras."
        if store_name is not None and distance_meters is not None:
            message += f" Loja mais próxima: {store_name} ({format_distance(distance_meters)})"
        super().__init__(message)

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload.update({"storeName": self.store_name, "distanceMeters": self.distance_meters})
        return payload


class DuplicateError(CashbackError):
    status_code = 409
    default_message = "Transação duplicada. Por favor, aguarde alguns minutos antes de tentar novamente."


class InvalidTransitionError(CashbackError):
    status_code = 409
    default_message = "Transição de status inválida"


class LocationTimeoutError(CashbackError):
    status_code = 408
    default_message = (
        "Tempo esgotado ao tentar obter sua localização. "
        "Por favor, verifique se o GPS está ativado e tente novamente."
    )


class AuthenticationError(CashbackError):
    status_code = 401
    default_message = "Credenciais inválidas"


class ServiceUnavailableError(CashbackError):
    status_code = 503
    default_message = "Serviço indisponível. Tente novamente em instantes."
