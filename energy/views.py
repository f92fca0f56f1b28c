"""
API Layer — Household Energy Tracker (Django REST Framework)

Design intent:

Views are thin controllers. Their responsibilities are intentionally limited
to:

- Parsing request bodies and query strings through input serializers
- Delegation to the application use cases
- Translation of domain exceptions into HTTP responses
- Rendering models through output serializers

Architectural decisions:

- No business rules are implemented here.
- Transactions and row locking live in the application layer.
- Domain exceptions are mapped explicitly: InvalidInput -> 400,
  NotFound -> 404, Conflict -> 409. Conflict bodies carry the offending
  ids next to the message.
- Framework errors (authentication, permissions, malformed JSON, serializer
  validation) are reshaped by api_exception_handler into the same
  {"message": ...} body.
"""

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView, exception_handler

from energy import csv_export
from energy.application import accounts, appliances, consumption, limits, reports, tariffs
from energy.authentication import IsAdmin
from energy.domain.exceptions import Conflict, DomainError, InvalidInput, NotFound
from energy.domain.periods import parse_date_range, parse_iso_date
from energy.models import User
from energy.serializers import (
    ApplianceInput,
    ApplianceOutput,
    AuditLogOutput,
    BlockInput,
    ConsumptionInput,
    ConsumptionOutput,
    CredentialsInput,
    LimitInput,
    LimitOutput,
    RoleInput,
    TariffInput,
    TariffOutput,
    UserOutput,
)

_STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
)


def domain_error_response(exc):
    for error_class, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return Response({"message": exc.message, **exc.extra}, status=code)
    return Response({"message": exc.message}, status=status.HTTP_400_BAD_REQUEST)


def _first_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if key == "non_field_errors" or message.startswith(str(key)):
                return message
            return f"{key}: {message}"
        return "invalid input"
    if isinstance(detail, list):
        return _first_message(detail[0]) if detail else "invalid input"
    return str(detail)


def api_exception_handler(exc, context):
    """DRF exception handler rendering every framework error as {"message": ...}."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ValidationError):
        response.data = {"message": _first_message(exc.detail), "errors": exc.detail}
    else:
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        response.data = {"message": str(detail)}
    return response


def _validated(serializer_class, request, partial=False):
    serializer = serializer_class(data=request.data, partial=partial)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def _parse_bool(value):
    if value in (True, "true", "1", 1):
        return True
    if value in (False, "false", "0", 0):
        return False
    return None


# Health & auth

class RegisterView(APIView):
    """POST /api/auth/register"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        data = _validated(CredentialsInput, request)
        try:
            user = accounts.register_user(data["email"], data["password"])
        except DomainError as exc:
            return domain_error_response(exc)
        return Response({"id": user.id, "email": user.email}, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """POST /api/auth/login"""

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        data = _validated(CredentialsInput, request)
        try:
            token = accounts.login(data["email"], data["password"])
        except accounts.InvalidCredentials:
            return Response(
                {"message": "invalid credentials"},
                status=status.HTTP_401_UNAUTHORIZED,
            )
        except accounts.AccountBlocked:
            return Response(
                {"message": "User is blocked"},
                status=status.HTTP_403_FORBIDDEN,
            )
        return Response({"token": token})


class MeView(APIView):
    """GET /api/auth/me"""

    def get(self, request):
        return Response({"id": request.user.id, "email": request.user.email, "role": request.user.role})


# Appliances

class ApplianceListView(APIView):
    """GET, POST /api/appliances"""

    def get(self, request):
        rows = appliances.list_appliances(request.user)
        return Response(ApplianceOutput(rows, many=True).data)

    def post(self, request):
        data = _validated(ApplianceInput, request)
        appliance = appliances.create_appliance(request.user, data)
        return Response(ApplianceOutput(appliance).data, status=status.HTTP_201_CREATED)


class ApplianceDetailView(APIView):
    """PATCH, DELETE /api/appliances/<id>"""

    def patch(self, request, pk):
        data = _validated(ApplianceInput, request, partial=True)
        try:
            appliance = appliances.update_appliance(request.user, pk, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(ApplianceOutput(appliance).data)

    def delete(self, request, pk):
        try:
            appliances.delete_appliance(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Tariffs

class TariffListView(APIView):
    """GET, POST /api/tariffs"""

    def get(self, request):
        return Response(TariffOutput(tariffs.list_tariffs(request.user), many=True).data)

    def post(self, request):
        data = _validated(TariffInput, request)
        try:
            tariff = tariffs.create_tariff(request.user, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(TariffOutput(tariff).data, status=status.HTTP_201_CREATED)


class TariffDetailView(APIView):
    """PATCH, DELETE /api/tariffs/<id>"""

    def patch(self, request, pk):
        data = _validated(TariffInput, request, partial=True)
        try:
            tariff = tariffs.update_tariff(request.user, pk, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(TariffOutput(tariff).data)

    def delete(self, request, pk):
        try:
            tariffs.delete_tariff(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TariffActivateView(APIView):
    """POST /api/tariffs/<id>/activate"""

    def post(self, request, pk):
        try:
            tariff = tariffs.activate_tariff(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(TariffOutput(tariff).data)


# Limits

class LimitListView(APIView):
    """GET, POST /api/limits"""

    def get(self, request):
        try:
            on_date = request.query_params.get("date")
            if on_date:
                on_date = parse_iso_date(on_date, "date")
            rows = limits.list_limits(
                request.user,
                period_type=request.query_params.get("period_type") or None,
                on_date=on_date or None,
            )
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(LimitOutput(rows, many=True).data)

    def post(self, request):
        data = _validated(LimitInput, request)
        try:
            limit = limits.create_limit(request.user, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(LimitOutput(limit).data, status=status.HTTP_201_CREATED)


class LimitDetailView(APIView):
    """PATCH, DELETE /api/limits/<id>"""

    def patch(self, request, pk):
        data = _validated(LimitInput, request, partial=True)
        try:
            limit = limits.update_limit(request.user, pk, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(LimitOutput(limit).data)

    def delete(self, request, pk):
        try:
            limits.delete_limit(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


class LimitProgressView(APIView):
    """GET /api/limits/<id>/progress"""

    def get(self, request, pk):
        try:
            progress = limits.get_limit_progress(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(progress)


# Consumption

class ConsumptionListView(APIView):
    """GET, POST /api/consumption"""

    def get(self, request):
        params = request.query_params
        try:
            date_from = params.get("date_from")
            date_to = params.get("date_to")
            date_from = parse_iso_date(date_from, "date_from") if date_from else None
            date_to = parse_iso_date(date_to, "date_to") if date_to else None
            if date_from and date_to and date_from > date_to:
                raise InvalidInput("date_from cannot be after date_to")
        except DomainError as exc:
            return domain_error_response(exc)
        rows = consumption.list_records(request.user, (date_from, date_to))
        return Response(ConsumptionOutput(rows, many=True).data)

    def post(self, request):
        data = _validated(ConsumptionInput, request)
        try:
            record = consumption.create_record(request.user, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(ConsumptionOutput(record).data, status=status.HTTP_201_CREATED)


class ConsumptionDetailView(APIView):
    """PATCH, DELETE /api/consumption/<id>"""

    def patch(self, request, pk):
        data = _validated(ConsumptionInput, request, partial=True)
        try:
            record = consumption.update_record(request.user, pk, data)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(ConsumptionOutput(record).data)

    def delete(self, request, pk):
        try:
            consumption.delete_record(request.user, pk)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Reports

class PeriodReportView(APIView):
    """Base for reports over a required [date_from, date_to] window."""

    def get_period(self, request):
        return parse_date_range(
            request.query_params.get("date_from"),
            request.query_params.get("date_to"),
        )

    def get(self, request):
        try:
            date_from, date_to = self.get_period(request)
        except DomainError as exc:
            return domain_error_response(exc)
        return self.render(request, date_from, date_to)

    def render(self, request, date_from, date_to):
        raise NotImplementedError


class SummaryReportView(PeriodReportView):
    """GET /api/reports/summary"""

    def render(self, request, date_from, date_to):
        return Response(reports.summary_report(request.user, date_from, date_to))


class DailyReportView(PeriodReportView):
    """GET /api/reports/daily"""

    def render(self, request, date_from, date_to):
        return Response(reports.daily_report(request.user, date_from, date_to))


class ByApplianceReportView(PeriodReportView):
    """GET /api/reports/by-appliance"""

    def render(self, request, date_from, date_to):
        return Response(reports.by_appliance_report(request.user, date_from, date_to))


class SummaryCsvView(PeriodReportView):
    """GET /api/reports/export/summary.csv"""

    headers = [
        "date_from", "date_to", "days", "total_kwh", "total_cost", "records_count",
        "kwh_per_day", "cost_per_day", "kwh_per_record", "cost_per_record",
        "max_day_date", "max_day_kwh", "max_day_cost",
    ]

    def render(self, request, date_from, date_to):
        report = reports.summary_report(request.user, date_from, date_to)
        max_day = report["max_day"] or {}
        row = {
            **report["period"],
            **report["totals"],
            **report["averages"],
            "max_day_date": max_day.get("date", ""),
            "max_day_kwh": max_day.get("kwh", 0),
            "max_day_cost": max_day.get("cost", 0),
        }
        filename = f"report_summary_{date_from.isoformat()}_to_{date_to.isoformat()}.csv"
        return csv_export.csv_response(filename, self.headers, [row])


class DailyCsvView(PeriodReportView):
    """GET /api/reports/export/daily.csv"""

    headers = ["record_date", "total_kwh", "total_cost", "records_count"]

    def render(self, request, date_from, date_to):
        rows = reports.daily_report(request.user, date_from, date_to)
        filename = f"report_daily_{date_from.isoformat()}_to_{date_to.isoformat()}.csv"
        return csv_export.csv_response(filename, self.headers, rows)


class ByApplianceCsvView(PeriodReportView):
    """GET /api/reports/export/by-appliance.csv"""

    headers = ["appliance_id", "appliance_name", "total_kwh", "total_cost", "records_count"]

    def render(self, request, date_from, date_to):
        rows = reports.by_appliance_report(request.user, date_from, date_to)
        filename = f"report_by_appliance_{date_from.isoformat()}_to_{date_to.isoformat()}.csv"
        return csv_export.csv_response(filename, self.headers, rows)


class LimitsReportView(APIView):
    """GET /api/reports/limits"""

    def get_report(self, request):
        params = request.query_params
        types, ids, statuses = reports.parse_limit_filters(
            params.get("period_type"), params.get("ids"), params.get("status")
        )
        period = parse_date_range(params.get("date_from"), params.get("date_to"), required=False)
        return reports.limits_report(request.user, types, ids, statuses, period)

    def get(self, request):
        try:
            report = self.get_report(request)
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(report)


class LimitsCsvView(LimitsReportView):
    """GET /api/reports/export/limits.csv"""

    headers = [
        "id", "period_type", "period_start", "period_end", "limit_kwh", "used_kwh",
        "remaining_kwh", "percent_used", "alert_enabled", "alert_threshold_percent", "status",
    ]

    def get(self, request):
        try:
            report = self.get_report(request)
        except DomainError as exc:
            return domain_error_response(exc)

        totals = report["totals"]
        rows = list(report["items"])
        rows.append({
            "id": "TOTAL",
            "limit_kwh": totals["total_limit_kwh"],
            "used_kwh": totals["total_used_kwh"],
            "status": (
                f"count={totals['limits_count']}; ok={totals['ok_count']}; "
                f"thr={totals['threshold_reached_count']}; exc={totals['limit_exceeded_count']}"
            ),
        })

        period = report["filters"]["period"]
        name_part = f"{period['date_from']}_to_{period['date_to']}" if period else "all"
        return csv_export.csv_response(f"report_limits_{name_part}.csv", self.headers, rows)


# Admin

class AdminUserListView(APIView):
    """GET /api/admin/users"""

    permission_classes = [IsAdmin]

    def get(self, request):
        params = request.query_params
        role = (params.get("role") or "").strip() or None
        if role and role not in (User.ROLE_USER, User.ROLE_ADMIN):
            return Response({"message": "role must be user or admin"}, status=status.HTTP_400_BAD_REQUEST)

        is_blocked = None
        if params.get("is_blocked") is not None:
            is_blocked = _parse_bool(params.get("is_blocked"))
            if is_blocked is None:
                return Response({"message": "is_blocked must be boolean"}, status=status.HTTP_400_BAD_REQUEST)

        page = accounts.list_users(
            q=(params.get("q") or "").strip() or None,
            role=role,
            is_blocked=is_blocked,
            limit=params.get("limit"),
            offset=params.get("offset"),
        )
        page["items"] = UserOutput(page["items"], many=True).data
        return Response(page)


class AdminUserRoleView(APIView):
    """PATCH /api/admin/users/<id>/role"""

    permission_classes = [IsAdmin]

    def patch(self, request, pk):
        data = _validated(RoleInput, request)
        try:
            user = accounts.change_role(request.user, pk, data["role"])
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(UserOutput(user).data)


class AdminUserBlockView(APIView):
    """PATCH /api/admin/users/<id>/block"""

    permission_classes = [IsAdmin]

    def patch(self, request, pk):
        data = _validated(BlockInput, request)
        try:
            user = accounts.set_blocked(request.user, pk, data["is_blocked"])
        except DomainError as exc:
            return domain_error_response(exc)
        return Response(UserOutput(user).data)


class AdminStatsView(APIView):
    """GET /api/admin/stats"""

    permission_classes = [IsAdmin]

    def get(self, request):
        return Response(accounts.user_stats())


class AdminAuditLogView(APIView):
    """GET /api/admin/audit-logs"""

    permission_classes = [IsAdmin]

    def get(self, request):
        params = request.query_params
        try:
            page = accounts.list_audit_logs(
                admin_id=(params.get("admin_id") or "").strip() or None,
                limit=params.get("limit"),
                offset=params.get("offset"),
            )
        except DomainError as exc:
            return domain_error_response(exc)
        page["items"] = AuditLogOutput(page["items"], many=True).data
        return Response(page)
