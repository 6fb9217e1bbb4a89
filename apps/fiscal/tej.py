"""
Monthly TEJ declaration: purchases on which a retenue à la source was
withheld, rendered as the CSV or XML file uploaded to the tax platform.
"""
import csv
import io
import xml.etree.ElementTree as ET
from decimal import Decimal

from django.conf import settings

from .calculator import quantize

CSV_HEADER = ['Numero', 'Date', 'Fournisseur', 'MF Fournisseur', 'Montant TTC', 'Retenue Source']


def tej_rows(month, year):
    """Purchase orders of the month that carry a retenue"""
    from apps.purchasing.models import PurchaseOrder

    orders = (
        PurchaseOrder.objects
        .filter(issue_date__year=year, issue_date__month=month,
                total__gte=settings.FISCAL['RETENUE_THRESHOLD'], retenue_source__gt=0)
        .exclude(status='cancelled')
        .select_related('supplier')
        .order_by('issue_date', 'number')
    )
    return [
        {
            'number': order.number,
            'date': order.issue_date.isoformat(),
            'supplier_name': order.supplier.name,
            'supplier_tax_id': order.supplier.tax_id,
            'total': quantize(order.total),
            'retenue_source': quantize(order.retenue_source),
        }
        for order in orders
    ]


def total_retenue(rows):
    return quantize(sum((row['retenue_source'] for row in rows), Decimal('0')))


def render_tej_csv(rows):
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow([
            row['number'],
            row['date'],
            row['supplier_name'],
            row['supplier_tax_id'],
            f"{row['total']:.3f}",
            f"{row['retenue_source']:.3f}",
        ])
    return buffer.getvalue()


def render_tej_xml(rows):
    root = ET.Element('DeclarationTEJ')
    purchases = ET.SubElement(root, 'Achats')
    for row in rows:
        purchase = ET.SubElement(purchases, 'Achat')
        ET.SubElement(purchase, 'Numero').text = row['number']
        ET.SubElement(purchase, 'Date').text = row['date']
        ET.SubElement(purchase, 'Fournisseur').text = row['supplier_name']
        ET.SubElement(purchase, 'MF').text = row['supplier_tax_id']
        ET.SubElement(purchase, 'MontantTTC').text = f"{row['total']:.3f}"
        ET.SubElement(purchase, 'RetenueSource').text = f"{row['retenue_source']:.3f}"
    ET.indent(root, space='  ')
    body = ET.tostring(root, encoding='unicode')
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + '\n'


RENDERERS = {
    'csv': (render_tej_csv, 'text/csv; charset=utf-8'),
    'xml': (render_tej_xml, 'application/xml; charset=utf-8'),
}
