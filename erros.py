"""
Erros de domínio da API.
Cada erro carrega o status HTTP e um código legível por máquina;
os handlers em app.py convertem para JSON.
"""


class ApiError(Exception):
    status_code = 500
    code = 'api_error'

    def __init__(self, message, log_message=None):
        super().__init__(message)
        self.message = message
        # versão para o log, sem dados pessoais
        self.log_message = log_message or message

    def to_dict(self):
        return {"message": self.message, "error": self.code}


class ValidationError(ApiError):
    """Entrada ausente ou inválida."""
    status_code = 400
    code = 'validation_error'


class ConflictError(ApiError):
    """Violação de unicidade ou de estado (ex.: CPF duplicado, créditos pendentes)."""
    status_code = 400
    code = 'conflict'


class NotFoundError(ApiError):
    status_code = 404
    code = 'not_found'


class ExternalServiceError(ApiError):
    """Falha em colaborador externo (renderização do comprovante, PDF do boleto)."""
    status_code = 500
    code = 'external_service_error'
