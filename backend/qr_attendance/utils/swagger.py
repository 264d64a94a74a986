"""Swagger/OpenAPI configuration for the application."""
from flask_swagger_ui import get_swaggerui_blueprint

# Swagger UI configuration
SWAGGER_URL = '/api/docs'
API_URL = '/api/swagger.json'

SECURED = [{"bearerAuth": []}]


def get_swagger_blueprint():
    """Create and return swagger UI blueprint."""
    return get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            'app_name': "QR Attendance API",
            'defaultModelsExpandDepth': -1,
            'docExpansion': 'list',
            'filter': True,
            'supportedSubmitMethods': ['get', 'post', 'patch'],
            'validatorUrl': None,
        }
    )


def _ref(name):
    return {"$ref": f"#/components/schemas/{name}"}


def _operation(tag, summary, secured=True, body=None, params=None, responses=None):
    operation = {
        "tags": [tag],
        "summary": summary,
        "responses": responses or {
            "200": {"description": "Success", "content": {"application/json": {"schema": _ref("Success")}}},
            "400": {"description": "Invalid input", "content": {"application/json": {"schema": _ref("Error")}}},
        },
    }
    if secured:
        operation["security"] = SECURED
    if body:
        operation["requestBody"] = {
            "required": True,
            "content": {"application/json": {"schema": body}}
        }
    if params:
        operation["parameters"] = params
    return operation


def _param(name, location="query", required=False, schema=None):
    return {"name": name, "in": location, "required": required, "schema": schema or {"type": "string"}}


def _object(required, **properties):
    return {"type": "object", "required": required, "properties": properties}


STRING = {"type": "string"}
FORMAT = _param("format", schema={"type": "string", "enum": ["csv", "xlsx"], "default": "csv"})


def generate_swagger_spec():
    """Generate OpenAPI/Swagger specification."""
    return {
        "openapi": "3.0.0",
        "info": {
            "title": "QR Attendance API",
            "description": "QR code attendance sessions with local backup and sync",
            "version": "1.0.0"
        },
        "servers": [{"url": "/api", "description": "Current server"}],
        "components": {
            "securitySchemes": {
                "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
            },
            "schemas": {
                "Session": {
                    "type": "object",
                    "properties": {
                        "id": STRING,
                        "subject": STRING,
                        "academic_level": STRING,
                        "token": STRING,
                        "created_at": {"type": "string", "format": "date-time"},
                        "expires_at": {"type": "string", "format": "date-time"},
                        "is_active": {"type": "boolean"},
                        "attendee_count": {"type": "integer"}
                    }
                },
                "AttendanceRecord": {
                    "type": "object",
                    "properties": {
                        "id": STRING,
                        "session_id": STRING,
                        "student_id": STRING,
                        "student_name": STRING,
                        "student_email": STRING,
                        "subject_name": STRING,
                        "check_in_time": {"type": "string", "format": "date-time"},
                        "method": {"type": "string", "enum": ["qr_scan", "external_scan"]},
                        "status": {"type": "string", "enum": ["present"]},
                        "grade_points": {"type": "number"}
                    }
                },
                "Error": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean"},
                        "message": STRING,
                        "status_code": {"type": "integer"}
                    }
                },
                "Success": {
                    "type": "object",
                    "properties": {
                        "error": {"type": "boolean", "default": False},
                        "message": STRING,
                        "data": {"type": "object"}
                    }
                }
            }
        },
        "paths": {
            "/auth/login": {"post": _operation(
                "Authentication", "Login", secured=False,
                body=_object(["email", "password"], email=STRING, password=STRING))},
            "/auth/register": {"post": _operation(
                "Authentication", "Register a student account", secured=False,
                body=_object(["email", "password", "name"], email=STRING, password=STRING,
                             name=STRING, student_id=STRING, academic_level=STRING))},
            "/auth/me": {"get": _operation("Authentication", "Current user")},
            "/auth/refresh": {"post": _operation("Authentication", "Refresh access token")},
            "/auth/logout": {"post": _operation("Authentication", "Logout")},
            "/sessions": {
                "get": _operation("Sessions", "List sessions",
                                  params=[_param("subject"), _param("academic_level")]),
                "post": _operation("Sessions", "Create a session and its QR code",
                                   body=_object(["subject", "academic_level"], subject=STRING,
                                                academic_level=STRING,
                                                duration_minutes={"type": "number"})),
            },
            "/sessions/active": {"get": _operation(
                "Sessions", "Active session", params=[_param("subject"), _param("academic_level")])},
            "/sessions/catalog": {"get": _operation("Sessions", "Academic levels and subjects", secured=False)},
            "/sessions/stats": {"get": _operation("Sessions", "Session statistics")},
            "/sessions/{session_id}": {"get": _operation(
                "Sessions", "Session details", params=[_param("session_id", "path", True)])},
            "/sessions/{session_id}/qr": {"get": _operation(
                "Sessions", "Session QR code", params=[_param("session_id", "path", True)])},
            "/sessions/{session_id}/close": {"post": _operation(
                "Sessions", "Close a session", params=[_param("session_id", "path", True)])},
            "/attendance/scan": {"post": _operation(
                "Attendance", "Check in with a scanned QR code",
                body=_object(["qr_data"], qr_data=STRING, subject=STRING))},
            "/attendance/me": {"get": _operation("Attendance", "Own attendance history")},
            "/attendance/records": {"get": _operation(
                "Attendance", "List attendance records",
                params=[_param("session_id"), _param("student_id"), _param("subject"), _param("since")])},
            "/attendance/records/{record_id}": {"get": _operation(
                "Attendance", "Attendance record", params=[_param("record_id", "path", True)])},
            "/attendance/records/{record_id}/grade": {"patch": _operation(
                "Attendance", "Override grade points",
                params=[_param("record_id", "path", True)],
                body=_object(["grade_points"], grade_points={"type": "number"}))},
            "/external": {
                "get": _operation(
                    "External", "Redirect a scanned URL", secured=False,
                    params=[_param("sessionId"), _param("token")],
                    responses={"302": {"description": "Redirect to dashboard or login"}}),
                "post": _operation(
                    "External", "Record an external check-in", secured=False,
                    body=_object(["sessionId", "studentId"], sessionId=STRING, studentId=STRING,
                                 studentName=STRING, studentEmail=STRING, subject=STRING)),
            },
            "/backups/status": {"get": _operation("Backups", "Backup store status")},
            "/backups/sync": {"post": _operation("Backups", "Sync pending entries to the database")},
            "/backups/requeue": {"post": _operation("Backups", "Move failed entries back to pending")},
            "/backups/entries": {"get": _operation("Backups", "List backup entries", params=[_param("status")])},
            "/backups/export": {"get": _operation("Backups", "Export backup entries", params=[FORMAT])},
            "/reports/students/{student_id}": {"get": _operation(
                "Reports", "Student attendance report", params=[_param("student_id", "path", True)])},
            "/reports/export": {"get": _operation(
                "Reports", "Export attendance records",
                params=[FORMAT, _param("session_id"), _param("subject")])},
            "/notifications": {"get": _operation(
                "Notifications", "Recent notifications", params=[_param("limit", schema={"type": "integer"})])},
        },
        "tags": [
            {"name": "Authentication", "description": "User authentication and authorization"},
            {"name": "Sessions", "description": "Attendance sessions and QR codes"},
            {"name": "Attendance", "description": "Check-ins and grades"},
            {"name": "External", "description": "External scanner ingress"},
            {"name": "Backups", "description": "Local backup store and sync"},
            {"name": "Reports", "description": "Attendance reports and exports"},
            {"name": "Notifications", "description": "Live session notifications"}
        ]
    }
