"""
Public referral API: referrer registration, code validation, friend signup
and public campaign pages
"""

from flask import Blueprint, request, jsonify, current_app

from services.enums import ErrorCode
from logging_config import get_logger

logger = get_logger(__name__)

public_bp = Blueprint('public', __name__)


def _error_response(result, status=None):
    return jsonify({'error': result.error}), status or result.http_status


@public_bp.route('/register', methods=['POST'])
def register():
    """Register a referrer (or return the existing registration) and issue a link"""
    body = request.get_json(silent=True) or {}

    referrer_service = current_app.services.get('referrer')
    result = referrer_service.register(
        email=body.get('email'),
        name=body.get('name'),
        campaign_id=body.get('campaignId'),
        campaign_slug=body.get('campaignSlug'),
    )
    if result.is_failure:
        return _error_response(result)

    referrer = result.data['referrer']
    is_existing = result.data['is_existing']
    return jsonify({
        'success': True,
        'referrer': referrer.to_dict(),
        'isExisting': is_existing,
        'message': (
            'Welcome back! Here is your existing referral link.'
            if is_existing else 'Your referral link has been created!'
        ),
    })


@public_bp.route('/validate-code', methods=['GET'])
def validate_code():
    code = (request.args.get('code') or '').strip()
    if not code:
        return jsonify({'valid': False, 'error': 'No referral code provided'}), 400

    result = current_app.services.get('referrer').lookup_by_code(code)
    if result.is_failure:
        return jsonify({'valid': False, 'error': result.error})

    referrer = result.data
    return jsonify({
        'valid': True,
        'referrer': {
            'name': referrer.name,
            'email': referrer.email,
        },
        'campaignId': referrer.campaign_id,
    })


@public_bp.route('/refer', methods=['POST'])
def refer():
    """Friend signup through a referral link"""
    body = request.get_json(silent=True) or {}

    referral_service = current_app.services.get('referral')
    result = referral_service.create_referral(
        referral_code=body.get('referralCode'),
        friend_name=body.get('friendName') or body.get('name'),
        friend_email=body.get('friendEmail') or body.get('email'),
        friend_phone=body.get('friendPhone') or body.get('phone'),
        child_grade=body.get('childGrade'),
        campaign_id=body.get('campaignId'),
        custom_fields=body.get('customFields'),
    )
    if result.is_failure:
        # An unknown code is a link problem the friend can fix, not a missing page
        if result.error_code == ErrorCode.NOT_FOUND.value:
            return _error_response(result, 400)
        return _error_response(result)

    booking_url = result.metadata['booking_url']
    return jsonify({
        'success': True,
        'referral': result.data.to_dict(),
        'bookingUrl': booking_url,
        'redirectUrl': booking_url,
        'message': 'Thank you for signing up!',
    })


@public_bp.route('/campaigns/<slug>', methods=['GET'])
def get_campaign(slug):
    """Public campaign configuration (no CRM identifiers)"""
    result = current_app.services.get('campaign').get_by_slug(slug)
    if result.is_failure:
        return _error_response(result)
    return jsonify({'campaign': result.data.to_public_dict()})
