import io
import os
import json
import logging
from datetime import date, timedelta

import click
from dotenv import load_dotenv
from flask import Blueprint, Flask, current_app, jsonify, request, send_file, url_for
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_talisman import Talisman
from werkzeug.exceptions import HTTPException

from beneficiarios import BeneficiaryRegistry
from comprovantes import ReceiptRenderer
from erros import ApiError, ConflictError, ExternalServiceError, NotFoundError, ValidationError
from lotes import CreditBatchIssuer
from modelos import BillingDocument
from pagamentos_gateway import DEFAULT_BASE_URL, DEFAULT_PAYEE_NAME, get_generator
from repositorio import MemoryStore
from seguranca import hmac_hash, mask_ip, sanitize_for_log

logger = logging.getLogger(__name__)

# Rate limiting (A07); ligado à app em create_app
limiter = Limiter(key_func=get_remote_address)

api = Blueprint('api', __name__)

DEMO_BENEFICIARIES = [
    ("Maria da Silva", "123.456.789-09"),
    ("João Pereira", "987.654.321-00"),
    ("Ana Souza", "111.444.777-35"),
    ("Carlos Oliveira", "529.982.247-25"),
]


# ----------------------------------------------------------------------
# 1. CONFIGURAÇÃO E LOGGING (A09)
# ----------------------------------------------------------------------

def load_config(app):
    load_dotenv()
    app.config['SECRET_KEY'] = os.getenv("SECRET_KEY")
    app.config['PUBLIC_BASE_URL'] = os.getenv('PUBLIC_BASE_URL', DEFAULT_BASE_URL)
    app.config['PAYMENT_GENERATOR'] = os.getenv('PAYMENT_GENERATOR', 'sandbox')
    app.config['PAYEE_NAME'] = os.getenv('PAYEE_NAME', DEFAULT_PAYEE_NAME)
    app.config['RECEIPT_ENABLED'] = os.getenv('RECEIPT_ENABLED', 'true').lower() == 'true'
    app.config['SEED_DEMO_DATA'] = os.getenv('SEED_DEMO_DATA', 'false').lower() == 'true'
    app.config['RATE_LIMIT_BATCHES'] = os.getenv('RATE_LIMIT_BATCHES', '30 per minute')
    app.config['RATELIMIT_STORAGE_URI'] = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    app.config['FORCE_HTTPS'] = os.getenv('FORCE_HTTPS', 'false').lower() == 'true'
    app.config['STRICT_HSTS'] = os.getenv('STRICT_HSTS', 'true').lower() == 'true'
    app.config['CORS_ORIGINS'] = os.getenv('CORS_ORIGINS', '*')
    app.config['LOG_FILE'] = os.getenv('LOG_FILE', 'security.log')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO').upper()


def configure_logging(app):
    # basicConfig não faz nada se o root logger já tiver handlers (ex.: pytest)
    if logging.getLogger().handlers:
        return
    handlers = [logging.StreamHandler()]  # console
    if app.config['LOG_FILE']:
        handlers.insert(0, logging.FileHandler(app.config['LOG_FILE']))  # arquivo para auditoria
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def create_app(test_config=None, generator=None, renderer=None, clock=None):
    app = Flask(__name__)
    load_config(app)
    if test_config:
        app.config.update(test_config)
    if not app.config['SECRET_KEY']:
        raise RuntimeError("SECRET_KEY is not set; set environment variable SECRET_KEY")

    configure_logging(app)

    limiter.init_app(app)
    # API JSON: nenhuma origem de conteúdo é necessária
    Talisman(
        app,
        content_security_policy={'default-src': "'none'", 'frame-ancestors': "'none'"},
        force_https=app.config['FORCE_HTTPS'],
        strict_transport_security=app.config['STRICT_HSTS'],
    )

    store = MemoryStore()
    if generator is None:
        generator = get_generator(
            app.config['PAYMENT_GENERATOR'],
            base_url=app.config['PUBLIC_BASE_URL'],
            payee_name=app.config['PAYEE_NAME'],
        )
    app.extensions['repositorio'] = store
    app.extensions['beneficiarios'] = BeneficiaryRegistry(store)
    app.extensions['lotes'] = CreditBatchIssuer(store, generator, clock=clock or date.today)
    app.extensions['comprovantes'] = renderer or ReceiptRenderer()

    app.register_blueprint(api)
    register_error_handlers(app)
    register_cli(app)

    @app.after_request
    def add_cors_headers(response):
        origins = app.config['CORS_ORIGINS']
        if origins:
            response.headers['Access-Control-Allow-Origin'] = origins
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, DELETE, OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    if app.config['SEED_DEMO_DATA']:
        seed_demo_beneficiaries(app.extensions['beneficiarios'])

    logger.info(f"Aplicação iniciada. Gerador de pagamento: {app.config['PAYMENT_GENERATOR']}")
    return app


def seed_demo_beneficiaries(registry, quantidade=None):
    created = []
    for full_name, cpf in DEMO_BENEFICIARIES[:quantidade]:
        try:
            created.append(registry.create(full_name, cpf))
        except ConflictError:
            logger.info(f"Beneficiário de exemplo já cadastrado. cpf_hash={hmac_hash(cpf)}")
    return created


# ----------------------------------------------------------------------
# 2. TRATAMENTO DE ERROS
# ----------------------------------------------------------------------

def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if isinstance(e, ExternalServiceError):
            logger.error(f"Falha em serviço externo: {request.method} {request.path}: {e.log_message}")
        else:
            logger.info(f"{e.status_code} {request.method} {request.path}: {sanitize_for_log(e.log_message)}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 429:
            logger.warning(f"429 Too Many Requests: {request.path} by IP: {mask_ip(request.remote_addr or '')}")
        else:
            logger.info(f"{e.code} {e.name}: {request.path}")
        body = {"message": e.description, "error": e.name.lower().replace(' ', '_')}
        return jsonify(body), e.code

    @app.errorhandler(Exception)
    def handle_500(e):
        logger.exception(f"Unhandled exception while handling request: {request.path}")
        return jsonify({"message": "Erro interno do servidor", "error": "internal_error"}), 500


# ----------------------------------------------------------------------
# 3. CLI
# ----------------------------------------------------------------------

def register_cli(app):

    @app.cli.command("demo-batch")
    @click.option('--quantidade', default=2, show_default=True, type=int,
                  help="Beneficiários de exemplo incluídos no lote.")
    @click.option('--valor', default='10.00', show_default=True, help="Valor de cada crédito.")
    @click.option('--saida', default='comprovante-demo.png', show_default=True,
                  type=click.Path(dir_okay=False, writable=True), help="Arquivo PNG do comprovante.")
    def demo_batch(quantidade, valor, saida):
        """Cadastra beneficiários de exemplo, emite um lote e grava o comprovante."""
        registry = app.extensions['beneficiarios']
        issuer = app.extensions['lotes']
        beneficiaries = seed_demo_beneficiaries(registry, quantidade) or registry.list()[:quantidade]
        credit_date = (issuer.clock() + timedelta(days=3)).isoformat()
        items = [{"beneficiaryId": b.id, "amount": valor, "creditDate": credit_date} for b in beneficiaries]
        try:
            result = issuer.issue_batch(items)
            content = app.extensions['comprovantes'].render_receipt(result)
        except ApiError as e:
            raise click.ClickException(e.message)
        with open(saida, 'wb') as fh:
            fh.write(content)
        click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        click.echo(f"Comprovante gravado em {saida}")


# ----------------------------------------------------------------------
# 4. ROTAS
# ----------------------------------------------------------------------

def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("O corpo da requisição deve ser um objeto JSON")
    return data


def _store_receipt(result):
    content = current_app.extensions['comprovantes'].render_receipt(result)
    batch_id = result.batch.id
    current_app.extensions['repositorio'].add_document(BillingDocument(
        batch_id=batch_id,
        beneficiary_ids=tuple(sorted({d.beneficiary_id for d in result.credits})),
        kind='receipt',
        filename=f"comprovante-lote-{batch_id}.png",
        media_type='image/png',
        content=content,
    ))
    return url_for('api.download_receipt', batch_id=batch_id, _external=True)


@api.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@api.route('/beneficiaries', methods=['GET'])
def list_beneficiaries():
    registry = current_app.extensions['beneficiarios']
    found = registry.list(name=request.args.get('name'), national_id=request.args.get('nationalId'))
    return jsonify([b.to_dict() for b in found])


@api.route('/beneficiaries/<int:beneficiary_id>', methods=['GET'])
def get_beneficiary(beneficiary_id):
    beneficiary = current_app.extensions['beneficiarios'].get(beneficiary_id)
    return jsonify(beneficiary.to_dict())


@api.route('/beneficiaries', methods=['POST'])
def create_beneficiary():
    data = _json_body()
    beneficiary = current_app.extensions['beneficiarios'].create(data.get('fullName'), data.get('nationalId'))
    return jsonify(beneficiary.to_dict()), 201


@api.route('/beneficiaries/<int:beneficiary_id>', methods=['PUT'])
def update_beneficiary(beneficiary_id):
    data = _json_body()
    beneficiary = current_app.extensions['beneficiarios'].update(
        beneficiary_id,
        full_name=data.get('fullName'),
        national_id=data.get('nationalId'),
    )
    return jsonify(beneficiary.to_dict())


@api.route('/beneficiaries/<int:beneficiary_id>', methods=['DELETE'])
def delete_beneficiary(beneficiary_id):
    current_app.extensions['beneficiarios'].delete(beneficiary_id)
    return '', 204


@api.route('/credit-batches', methods=['POST'])
@limiter.limit(lambda: current_app.config['RATE_LIMIT_BATCHES'])
def issue_credit_batch():
    data = _json_body()
    result = current_app.extensions['lotes'].issue_batch(data.get('credits'))
    body = result.to_dict()
    if current_app.config['RECEIPT_ENABLED']:
        body['receiptUrl'] = _store_receipt(result)
    return jsonify(body), 201


@api.route('/credit-batches', methods=['GET'])
def list_credit_batches():
    batches = current_app.extensions['lotes'].list_batches()
    return jsonify([b.to_dict() for b in batches])


@api.route('/credit-batches/<int:batch_id>', methods=['GET'])
def get_credit_batch(batch_id):
    batch, credits = current_app.extensions['lotes'].get_batch(batch_id)
    body = batch.to_dict()
    body['credits'] = [dict(credit.to_dict(), beneficiary=summary) for summary, credit in credits]
    return jsonify(body)


@api.route('/credit-batches/<int:batch_id>/receipt', methods=['GET'])
def download_receipt(batch_id):
    document = current_app.extensions['repositorio'].find_document(batch_id, 'receipt')
    if document is None:
        raise NotFoundError("Comprovante não encontrado")
    return send_file(io.BytesIO(document.content), mimetype=document.media_type,
                     download_name=document.filename)


@api.route('/boletos/download/<int:batch_id>/<filename>', methods=['GET'])
def download_boleto(batch_id, filename):
    # o nome do arquivo na URL é só cosmético; o boleto é sempre o do lote
    try:
        batch, _ = current_app.extensions['lotes'].get_batch(batch_id)
    except NotFoundError:
        raise NotFoundError("Boleto não encontrado")
    pdf = current_app.extensions['comprovantes'].render_boleto(batch)
    return send_file(io.BytesIO(pdf), mimetype='application/pdf', as_attachment=True,
                     download_name=f"boleto-lote-{batch_id}.pdf")


if __name__ == '__main__':
    # Em produção, use debug=False; control via env
    debug_mode = os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
    create_app().run(debug=debug_mode)
