"""
Admin blueprint (role: admin):
- POST   /admin/doctors
- GET    /admin/doctors
- PUT    /admin/doctors/<user_id>
- DELETE /admin/doctors/<user_id>
- POST   /admin/users/<user_id>/deactivate
- POST   /admin/users/<user_id>/activate
"""
from __future__ import annotations

import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, abort

from models import storage
from models.user import AuthProvider, Role, User
from models.schemas.user import DoctorCreateSchema, DoctorOutSchema, DoctorUpdateSchema, UserOutSchema
from utils.decorators import roles_required
from utils.security import hash_password
from utils.sessions import current_auth

logger = logging.getLogger(__name__)

MAX_LIMIT = 100

bp = Blueprint("admin", __name__)

doctor_create_schema = DoctorCreateSchema()
doctor_update_schema = DoctorUpdateSchema()
doctor_out_schema = DoctorOutSchema()
doctor_list_out_schema = DoctorOutSchema(many=True)
user_out_schema = UserOutSchema()


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


def _get_doctor(user_id: str) -> User:
    doctor = User.find_by_id(user_id)
    if not doctor:
        abort(404, description="Doctor not found")
    if doctor.role != Role.DOCTOR:
        abort(400, description="User is not a doctor")
    return doctor


@bp.post("/doctors")
@roles_required(["admin"])
def create_doctor():
    """
    Create a doctor account
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
            specialization: { type: string }
    responses:
      201: { description: Created }
      403: { description: Forbidden }
      409: { description: Email already registered }
    """
    data = doctor_create_schema.load(request.get_json(silent=True) or {})
    if User.find_by_email(data["email"]):
        abort(409, description="A user with this email already exists")

    doctor = User.create(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        role=Role.DOCTOR,
        specialization=data.get("specialization"),
        auth_provider=AuthProvider.LOCAL,
    )
    logger.info("Admin created doctor %s", doctor.id)
    return jsonify({"data": {"doctor": doctor_out_schema.dump(doctor)}}), 201


@bp.get("/doctors")
@roles_required(["admin"])
def list_doctors():
    """
    List doctors, newest first (supports page and limit)
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    responses:
      200: { description: OK }
    """
    session = storage.get_session()
    page, limit = parse_pagination()

    query = session.query(User).filter(User.role == Role.DOCTOR)
    total = query.count()
    rows = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return jsonify(
        {
            "data": doctor_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total},
        }
    ), 200


@bp.put("/doctors/<user_id>")
@roles_required(["admin"])
def update_doctor(user_id: str):
    """
    Update a doctor's name or specialization
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    data = doctor_update_schema.load(request.get_json(silent=True) or {})
    doctor = _get_doctor(user_id)
    for key, value in data.items():
        setattr(doctor, key, value)
    doctor.save()
    return jsonify({"data": {"doctor": doctor_out_schema.dump(doctor)}}), 200


@bp.delete("/doctors/<user_id>")
@roles_required(["admin"])
def delete_doctor(user_id: str):
    """
    Delete a doctor (their registered sessions go with them)
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      204: { description: Deleted }
      404: { description: Not found }
    """
    doctor = _get_doctor(user_id)
    doctor.delete()
    storage.save()
    logger.info("Admin deleted doctor %s", user_id)
    return ("", 204)


@bp.post("/users/<user_id>/deactivate")
@roles_required(["admin"])
def deactivate_user(user_id: str):
    """
    Deactivate an account and revoke all of its sessions
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = User.find_by_id(user_id)
    if not user:
        abort(404, description="User not found")
    user.is_active = False
    user.save()
    current_auth().revoke_all(user)
    logger.info("Admin deactivated user %s", user_id)
    return jsonify({"data": {"user": user_out_schema.dump(user)}}), 200


@bp.post("/users/<user_id>/activate")
@roles_required(["admin"])
def activate_user(user_id: str):
    """
    Reactivate an account; the user must log in again
    ---
    tags: [Admin]
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    user = User.find_by_id(user_id)
    if not user:
        abort(404, description="User not found")
    user.is_active = True
    user.save()
    return jsonify({"data": {"user": user_out_schema.dump(user)}}), 200
