from django.urls import path

from . import views

urlpatterns = [
    path("auth/register", views.RegisterView.as_view(), name="auth-register"),
    path("auth/login", views.LoginView.as_view(), name="auth-login"),
    path("auth/me", views.MeView.as_view(), name="auth-me"),

    path("appliances", views.ApplianceListView.as_view(), name="appliance-list"),
    path("appliances/<int:pk>", views.ApplianceDetailView.as_view(), name="appliance-detail"),

    path("tariffs", views.TariffListView.as_view(), name="tariff-list"),
    path("tariffs/<int:pk>", views.TariffDetailView.as_view(), name="tariff-detail"),
    path("tariffs/<int:pk>/activate", views.TariffActivateView.as_view(), name="tariff-activate"),

    path("limits", views.LimitListView.as_view(), name="limit-list"),
    path("limits/<int:pk>", views.LimitDetailView.as_view(), name="limit-detail"),
    path("limits/<int:pk>/progress", views.LimitProgressView.as_view(), name="limit-progress"),

    path("consumption", views.ConsumptionListView.as_view(), name="consumption-list"),
    path("consumption/<int:pk>", views.ConsumptionDetailView.as_view(), name="consumption-detail"),

    path("reports/summary", views.SummaryReportView.as_view(), name="report-summary"),
    path("reports/daily", views.DailyReportView.as_view(), name="report-daily"),
    path("reports/by-appliance", views.ByApplianceReportView.as_view(), name="report-by-appliance"),
    path("reports/limits", views.LimitsReportView.as_view(), name="report-limits"),
    path("reports/export/summary.csv", views.SummaryCsvView.as_view(), name="export-summary"),
    path("reports/export/daily.csv", views.DailyCsvView.as_view(), name="export-daily"),
    path(
        "reports/export/by-appliance.csv",
        views.ByApplianceCsvView.as_view(),
        name="export-by-appliance",
    ),
    path("reports/export/limits.csv", views.LimitsCsvView.as_view(), name="export-limits"),

    path("admin/users", views.AdminUserListView.as_view(), name="admin-users"),
    path("admin/users/<int:pk>/role", views.AdminUserRoleView.as_view(), name="admin-user-role"),
    path("admin/users/<int:pk>/block", views.AdminUserBlockView.as_view(), name="admin-user-block"),
    path("admin/stats", views.AdminStatsView.as_view(), name="admin-stats"),
    path("admin/audit-logs", views.AdminAuditLogView.as_view(), name="admin-audit-logs"),
]
