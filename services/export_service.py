import io

import pandas as pd
from flask import send_file
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from models.models import COMMENT_MANAGER_NOTE, PRIORITY_NONE

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
LINE_HEIGHT = 14


def _rooms(rooms):
    return ', '.join(str(r) for r in rooms)


def reports_dataframe(reports):
    return pd.DataFrame([{
        'ID': r.id,
        'Created': r.created_at.strftime('%Y-%m-%d %H:%M'),
        'Author': r.author_name,
        'Priority': r.priority,
        'Report': r.body_text or '',
        'Noted Rooms': _rooms(r.noted_rooms),
        'Stayover Rooms': _rooms(r.stayover_rooms),
        'Arrivals': r.arrivals,
        'Departures': r.departures,
        'Occupancy %': r.occupancy_percentage,
        'Attachments': len(r.attachments),
        'Comments': len(r.comments),
        'Archived': r.is_hidden,
        'Resolved': r.is_resolved,
    } for r in reports], columns=[
        'ID', 'Created', 'Author', 'Priority', 'Report', 'Noted Rooms', 'Stayover Rooms',
        'Arrivals', 'Departures', 'Occupancy %', 'Attachments', 'Comments', 'Archived', 'Resolved',
    ])


def export_reports_csv(reports):
    df = reports_dataframe(reports)
    csv_io = io.StringIO()
    df.to_csv(csv_io, index=False)
    csv_io.seek(0)
    return send_file(io.BytesIO(csv_io.getvalue().encode()), mimetype='text/csv', as_attachment=True,
                     download_name='shift_reports.csv')


class _PdfWriter:
    """Top-down text cursor over a reportlab canvas that breaks pages as needed."""

    def __init__(self, buffer):
        self.canvas = canvas.Canvas(buffer, pagesize=A4)
        self.y = PAGE_HEIGHT - MARGIN

    def _ensure_room(self, lines=1):
        if self.y - lines * LINE_HEIGHT < MARGIN:
            self.canvas.showPage()
            self.y = PAGE_HEIGHT - MARGIN

    def heading(self, text, size=13):
        self._ensure_room(2)
        self.y -= 6
        self.canvas.setFont('Helvetica-Bold', size)
        self.canvas.drawString(MARGIN, self.y, text)
        self.y -= LINE_HEIGHT + 4

    def text(self, text, indent=0, font='Helvetica', size=10):
        width = PAGE_WIDTH - 2 * MARGIN - indent
        for paragraph in str(text).splitlines() or ['']:
            for line in simpleSplit(paragraph, font, size, width) or ['']:
                self._ensure_room()
                self.canvas.setFont(font, size)
                self.canvas.drawString(MARGIN + indent, self.y, line)
                self.y -= LINE_HEIGHT

    def save(self):
        self.canvas.save()


def render_report_pdf(report):
    """Render a single report with all its comments; managers only see this export."""
    pdf_io = io.BytesIO()
    pdf = _PdfWriter(pdf_io)
    pdf.heading('Hotel Shift Report', size=18)
    author = report.author_name
    if report.author:
        author = f'{author} ({report.author.username})'
    pdf.text(f'Author: {author}')
    pdf.text(f"Date/Time: {report.created_at.strftime('%Y-%m-%d %H:%M')}")
    if report.priority != PRIORITY_NONE:
        pdf.text(f'Priority: {report.priority.upper()}', font='Helvetica-Bold')
    status = []
    if report.is_resolved:
        status.append('Resolved')
    if report.is_hidden:
        status.append('Archived')
    if status:
        pdf.text(f"Status: {', '.join(status)}")

    if report.body_text:
        pdf.heading('Report Details')
        pdf.text(report.body_text)

    if report.arrivals is not None or report.departures is not None or report.occupancy_percentage is not None:
        pdf.heading('End of Day Statistics')
        if report.arrivals is not None:
            pdf.text(f'Arrivals: {report.arrivals}')
        if report.departures is not None:
            pdf.text(f'Departures: {report.departures}')
        if report.occupancy_percentage is not None:
            pdf.text(f'Occupancy: {report.occupancy_percentage}%')

    if report.noted_rooms:
        pdf.heading('Noted Rooms')
        pdf.text(_rooms(report.noted_rooms))
    if report.stayover_rooms:
        pdf.heading('Stayover Rooms')
        pdf.text(_rooms(report.stayover_rooms))

    if report.attachments:
        pdf.heading('Attachments')
        for attachment in report.attachments:
            pdf.text(f'- {attachment.original_name}')

    if report.comments:
        pdf.heading(f'Comments ({len(report.comments)})')
        for comment in report.comments:
            label = 'Manager note' if comment.comment_type == COMMENT_MANAGER_NOTE else 'Comment'
            if comment.is_hidden:
                label += ', hidden'
            pdf.text(f"{comment.author_name} - {comment.created_at.strftime('%Y-%m-%d %H:%M')} ({label})",
                     font='Helvetica-Bold')
            pdf.text(comment.content or f'[File: {comment.original_file_name}]', indent=12)

    pdf.save()
    pdf_io.seek(0)
    return pdf_io


def export_report_pdf(report):
    return send_file(render_report_pdf(report), mimetype='application/pdf', as_attachment=True,
                     download_name=f'shift-report-{report.id}.pdf')
