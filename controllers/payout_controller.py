from flask import Blueprint, request, jsonify
from services.exceptions import LedgerError
from services.commission_service import CommissionService
from services.payout_service import PayoutService

payout_bp = Blueprint('payout', __name__)


@payout_bp.errorhandler(LedgerError)
def handle_ledger_error(e):
    return jsonify(e.to_dict()), e.status_code


@payout_bp.route('/agents/<uuid:agent_id>/balance', methods=['GET'])
def agent_balance(agent_id):
    available = PayoutService().compute_available_balance(agent_id)
    return jsonify({'agent_id': str(agent_id), 'available_balance': str(available)}), 200


@payout_bp.route('/agents/<uuid:agent_id>/commissions', methods=['GET'])
def list_agent_commissions(agent_id):
    commissions = CommissionService().list_commissions(agent_id)
    return jsonify([c.to_dict() for c in commissions]), 200


@payout_bp.route('/agents/<uuid:agent_id>/payouts', methods=['GET'])
def list_agent_payouts(agent_id):
    payouts = PayoutService().list_payouts(agent_id=agent_id, status=request.args.get('status'))
    return jsonify([p.to_dict() for p in payouts]), 200


@payout_bp.route('/agents/<uuid:agent_id>/payouts', methods=['POST'])
def create_payout(agent_id):
    data = request.get_json(silent=True) or {}
    payout = PayoutService().request_payout(agent_id, data.get('amount'))
    return jsonify(payout.to_dict()), 201


@payout_bp.route('/payouts', methods=['GET'])
def list_payouts():
    payouts = PayoutService().list_payouts(status=request.args.get('status'))
    return jsonify([p.to_dict() for p in payouts]), 200


@payout_bp.route('/payouts/<uuid:payout_id>', methods=['GET'])
def get_payout(payout_id):
    service = PayoutService()
    payout = service.get_payout(payout_id)
    res = payout.to_dict()
    res['commissions'] = [link.to_dict() for link in service.payout_commissions(payout_id)]
    return jsonify(res), 200


@payout_bp.route('/payouts/<uuid:payout_id>/status', methods=['PUT'])
def update_payout_status(payout_id):
    data = request.get_json(silent=True) or {}
    payout = PayoutService().resolve_payout(
        payout_id,
        data.get('status'),
        transaction_id=data.get('transaction_id'),
    )
    return jsonify(payout.to_dict()), 200


@payout_bp.route('/orders/<uuid:order_id>/commission', methods=['POST'])
def record_commission(order_id):
    data = request.get_json(silent=True) or {}
    commission = CommissionService().record_order_commission(order_id, rate=data.get('rate'))
    if commission is None:
        return jsonify({'message': 'Order has no referral agent'}), 200
    return jsonify(commission.to_dict()), 201
