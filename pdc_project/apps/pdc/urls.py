from django.urls import path
from . import views

app_name = 'pdc'

urlpatterns = [
    # Records
    path('api/pdcs/', views.pdc_list, name='pdc_list'),
    path('api/pdcs/create/', views.pdc_create, name='pdc_create'),
    path('api/pdcs/bulk-create/', views.pdc_bulk_create, name='pdc_bulk_create'),
    path('api/pdcs/<int:pk>/', views.pdc_detail, name='pdc_detail'),

    # Lifecycle actions
    path('api/pdcs/<int:pk>/deposit/', views.pdc_deposit, name='pdc_deposit'),
    path('api/pdcs/<int:pk>/clear/', views.pdc_clear, name='pdc_clear'),
    path('api/pdcs/<int:pk>/bounce/', views.pdc_bounce, name='pdc_bounce'),
    path('api/pdcs/<int:pk>/replace/', views.pdc_replace, name='pdc_replace'),
    path('api/pdcs/<int:pk>/withdraw/', views.pdc_withdraw, name='pdc_withdraw'),
    path('api/pdcs/<int:pk>/cancel/', views.pdc_cancel, name='pdc_cancel'),

    # Settlements
    path('api/settlements/open/', views.settlement_open, name='settlement_open'),
    path('api/settlements/<int:pk>/link/', views.settlement_link, name='settlement_link'),
    path('api/withdrawals/', views.withdrawal_list, name='withdrawal_list'),

    # Dashboard & lookups
    path('api/dashboard/', views.dashboard, name='dashboard'),
    path('api/tenants/<int:pk>/history/', views.tenant_history, name='tenant_history'),
    path('api/banks/', views.bank_list, name='bank_list'),
    path('api/check-duplicate/', views.check_duplicate, name='check_duplicate'),

    # Reports
    path('reports/register.xlsx', views.register_export, name='register_export'),
]
