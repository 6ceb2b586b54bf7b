"""
Excel Export Utilities for PDC Reports
Uses openpyxl for Excel generation.
"""
from decimal import Decimal

from django.http import HttpResponse
from openpyxl import Workbook
from openpyxl.cell.cell import MergedCell
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill

from .conf import pdc_setting
from .states import PDCStatus

XLSX_CONTENT_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# Row highlight per status; statuses not listed stay unfilled.
STATUS_FILLS = {
    PDCStatus.BOUNCED: 'F8D7DA',
    PDCStatus.DUE: 'FFF3CD',
    PDCStatus.CLEARED: 'D4EDDA',
}


def create_excel_response(filename):
    """Create HttpResponse for Excel file download."""
    response = HttpResponse(content_type=XLSX_CONTENT_TYPE)
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def style_header_row(ws, row_num, col_count):
    """Apply header styling to a row."""
    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(start_color='366092', end_color='366092', fill_type='solid')
    header_align = Alignment(horizontal='center', vertical='center')

    for col in range(1, col_count + 1):
        cell = ws.cell(row=row_num, column=col)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align


def style_title_row(ws, row_num, title, col_count):
    """Add and style a title row."""
    ws.merge_cells(start_row=row_num, start_column=1, end_row=row_num, end_column=col_count)
    cell = ws.cell(row=row_num, column=1, value=title)
    cell.font = Font(bold=True, size=14)
    cell.alignment = Alignment(horizontal='center')


def auto_width_columns(ws):
    """Auto-adjust column widths based on content."""
    for column_cells in ws.columns:
        max_length = 0
        column = None
        for cell in column_cells:
            # Skip merged cells
            if isinstance(cell, MergedCell):
                continue
            if column is None:
                column = cell.column_letter
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        if column:
            ws.column_dimensions[column].width = min(max_length + 2, 50)


def format_currency(value):
    """Decimal amounts are written as numbers so Excel can sum them."""
    if value is None:
        return ''
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    return value


def format_date(value):
    return value.strftime('%Y-%m-%d') if value else ''


# ============ PDC REGISTER EXPORT ============

def export_pdc_register(pdcs, filters=None, as_of_date=None):
    """
    Export the PDC register to Excel: one row per cheque plus a per-status
    summary sheet.
    """
    currency = pdc_setting('CURRENCY')
    wb = Workbook()
    ws = wb.active
    ws.title = 'PDC Register'

    headers = [
        'PDC #', 'Tenant', 'Cheque #', 'Bank', 'Cheque Date', f'Amount ({currency})',
        'Status', 'Deposited', 'Cleared', 'Bounced', 'Bounce Reason', 'Replaced By', 'Replaces',
    ]
    style_title_row(ws, 1, 'PDC Register', len(headers))
    subtitle = f'As of {as_of_date}' if as_of_date else ''
    if filters:
        applied = ', '.join(f'{key}: {value}' for key, value in filters.items() if value)
        if applied:
            subtitle = f'{subtitle} | {applied}' if subtitle else applied
    if subtitle:
        ws.cell(row=2, column=1, value=subtitle)

    for col, header in enumerate(headers, 1):
        ws.cell(row=4, column=col, value=header)
    style_header_row(ws, 4, len(headers))

    row = 5
    totals_by_status = {}
    grand_total = Decimal('0.00')
    for pdc in pdcs:
        ws.cell(row=row, column=1, value=pdc.pdc_number)
        ws.cell(row=row, column=2, value=pdc.tenant.name)
        ws.cell(row=row, column=3, value=pdc.cheque_number)
        ws.cell(row=row, column=4, value=pdc.bank_name)
        ws.cell(row=row, column=5, value=format_date(pdc.cheque_date))
        ws.cell(row=row, column=6, value=format_currency(pdc.amount))
        ws.cell(row=row, column=7, value=pdc.get_status_display())
        ws.cell(row=row, column=8, value=format_date(pdc.deposit_date))
        ws.cell(row=row, column=9, value=format_date(pdc.cleared_date))
        ws.cell(row=row, column=10, value=format_date(pdc.bounced_date))
        ws.cell(row=row, column=11, value=pdc.bounce_reason)
        ws.cell(row=row, column=12, value=pdc.replacement_cheque_id or '')
        ws.cell(row=row, column=13, value=pdc.original_cheque_id or '')

        fill = STATUS_FILLS.get(pdc.status)
        if fill:
            for col in range(1, len(headers) + 1):
                ws.cell(row=row, column=col).fill = PatternFill(
                    start_color=fill, end_color=fill, fill_type='solid'
                )

        count, amount = totals_by_status.get(pdc.status, (0, Decimal('0.00')))
        totals_by_status[pdc.status] = (count + 1, amount + pdc.amount)
        grand_total += pdc.amount
        row += 1

    # Totals
    ws.cell(row=row, column=1, value='TOTAL')
    ws.cell(row=row, column=6, value=format_currency(grand_total))
    thin = Side(style='thin')
    for col in range(1, len(headers) + 1):
        cell = ws.cell(row=row, column=col)
        cell.font = Font(bold=True)
        cell.border = Border(top=thin, bottom=Side(style='double'))
    auto_width_columns(ws)

    summary = wb.create_sheet('Summary')
    summary_headers = ['Status', 'Cheques', f'Amount ({currency})']
    for col, header in enumerate(summary_headers, 1):
        summary.cell(row=1, column=col, value=header)
    style_header_row(summary, 1, len(summary_headers))
    summary_row = 2
    for status in PDCStatus:
        count, amount = totals_by_status.get(status, (0, Decimal('0.00')))
        summary.cell(row=summary_row, column=1, value=status.label)
        summary.cell(row=summary_row, column=2, value=count)
        summary.cell(row=summary_row, column=3, value=format_currency(amount))
        summary_row += 1
    auto_width_columns(summary)

    response = create_excel_response(f'pdc_register_{as_of_date or "all"}.xlsx')
    wb.save(response)
    return response
