from django.contrib import admin
from .models import Invoice, Transaction


class TransactionInline(admin.TabularInline):
    model = Transaction
    extra = 0
    fields = ['transaction_code', 'payment_gateway', 'amount_paid', 'status', 'payment_date']
    readonly_fields = ['transaction_code', 'payment_date']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'invoice_type', 'amount', 'status', 'due_date', 'paid_date']
    list_filter = ['status', 'invoice_type', 'due_date']
    search_fields = ['invoice_number', 'description']
    inlines = [TransactionInline]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_code', 'invoice', 'payment_gateway', 'amount_paid', 'status', 'payment_date']
    list_filter = ['status', 'payment_gateway']
    search_fields = ['transaction_code']
    readonly_fields = ['gateway_response']
