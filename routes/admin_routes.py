"""
Admin API: cookie authentication, referral lifecycle actions, listings,
exports and campaign management
"""

from flask import Blueprint, request, jsonify, current_app, Response

from auth_utils import admin_required, is_admin_request
from services.enums import ReferralStatus
from logging_config import get_logger

logger = get_logger(__name__)

admin_bp = Blueprint('admin', __name__)

EXPORT_TYPES = ('referrals', 'referrers')


def _error_response(result):
    return jsonify({'error': result.error}), result.http_status


# --- Authentication ---

@admin_bp.route('/auth', methods=['POST'])
def login():
    body = request.get_json(silent=True) or {}

    auth_service = current_app.services.get('admin_auth')
    result = auth_service.login(body.get('password'), ip_address=request.remote_addr)
    if result.is_failure:
        return _error_response(result)

    response = jsonify({'success': True})
    response.set_cookie(auth_service.cookie_name, result.data, **auth_service.cookie_options())
    return response


@admin_bp.route('/auth', methods=['GET'])
def auth_status():
    return jsonify({'authenticated': is_admin_request()})


@admin_bp.route('/logout', methods=['POST'])
def logout():
    auth_service = current_app.services.get('admin_auth')
    response = jsonify({'success': True})
    response.delete_cookie(auth_service.cookie_name, httponly=True, samesite='Strict')
    return response


# --- Referrals ---

@admin_bp.route('/update-status', methods=['POST'])
@admin_required
def update_status():
    body = request.get_json(silent=True) or {}
    referral_id = body.get('referralId')
    action = body.get('action')

    if not referral_id or not action:
        return jsonify({'error': 'Referral ID and action are required'}), 400

    result = current_app.services.get('referral').transition(referral_id, action, body.get('notes'))
    if result.is_failure:
        return _error_response(result)

    return jsonify({'success': True, 'referral': result.data.to_dict()})


@admin_bp.route('/referrals', methods=['GET'])
@admin_required
def list_referrals():
    campaign_id = request.args.get('campaignId') or None
    status = request.args.get('status') or None
    if status and status not in {s.value for s in ReferralStatus}:
        return jsonify({'error': f'Unknown status: {status}'}), 400

    referral_service = current_app.services.get('referral')
    referrer_service = current_app.services.get('referrer')

    return jsonify({
        'referrals': [r.to_dict() for r in referral_service.list_referrals(campaign_id=campaign_id, status=status)],
        'stats': referral_service.get_stats(campaign_id=campaign_id),
        'referrers': [r.to_dict() for r in referrer_service.list_referrers(campaign_id=campaign_id)],
    })


@admin_bp.route('/delete-referrer', methods=['POST'])
@admin_required
def delete_referrer():
    body = request.get_json(silent=True) or {}
    email = body.get('email')
    if not email:
        return jsonify({'error': 'Email is required'}), 400

    result = current_app.services.get('referrer').delete(email)
    if result.is_failure:
        return _error_response(result)

    return jsonify({
        'success': True,
        'message': 'Referrer and associated referrals deleted',
        'referrersDeleted': result.data['referrers_deleted'],
        'referralsDeleted': result.data['referrals_deleted'],
    })


@admin_bp.route('/export', methods=['GET'])
@admin_required
def export():
    """CSV download of referrals (default) or referrers"""
    export_type = request.args.get('type') or 'referrals'
    if export_type not in EXPORT_TYPES:
        return jsonify({'error': f'Unknown export type: {export_type}'}), 400

    campaign_id = request.args.get('campaignId') or None
    export_service = current_app.services.get('export')
    if export_type == 'referrers':
        content = export_service.export_referrers(campaign_id=campaign_id)
    else:
        content = export_service.export_referrals(campaign_id=campaign_id)

    return Response(
        content,
        mimetype='text/csv',
        headers={
            'Content-Disposition': f'attachment; filename="{export_service.filename(export_type)}"'
        }
    )


# --- Campaigns ---

@admin_bp.route('/campaigns', methods=['GET'])
@admin_required
def list_campaigns():
    campaign_service = current_app.services.get('campaign')
    campaigns = []
    for campaign in campaign_service.list_campaigns():
        data = campaign.to_dict()
        data['stats'] = campaign_service.stats(campaign.id)
        campaigns.append(data)
    return jsonify({'campaigns': campaigns})


@admin_bp.route('/campaigns', methods=['POST'])
@admin_required
def create_campaign():
    result = current_app.services.get('campaign').create(request.get_json(silent=True) or {})
    if result.is_failure:
        return _error_response(result)
    return jsonify({'campaign': result.data.to_dict()}), 201


@admin_bp.route('/campaigns/<campaign_id>', methods=['GET'])
@admin_required
def get_campaign(campaign_id):
    campaign_service = current_app.services.get('campaign')
    result = campaign_service.get_by_id(campaign_id)
    if result.is_failure:
        return _error_response(result)

    data = result.data.to_dict()
    data['stats'] = campaign_service.stats(campaign_id)
    return jsonify({'campaign': data})


@admin_bp.route('/campaigns/<campaign_id>', methods=['PUT'])
@admin_required
def update_campaign(campaign_id):
    result = current_app.services.get('campaign').update(campaign_id, request.get_json(silent=True) or {})
    if result.is_failure:
        return _error_response(result)
    return jsonify({'campaign': result.data.to_dict()})


@admin_bp.route('/campaigns/<campaign_id>', methods=['DELETE'])
@admin_required
def delete_campaign(campaign_id):
    result = current_app.services.get('campaign').delete(campaign_id)
    if result.is_failure:
        return _error_response(result)
    return jsonify({'success': True})
