from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from db.extensions import db
from models.status import PayoutStatus
from models.user import User
from services.utils import send_email


STATUS_HEADLINES = {
    PayoutStatus.APPROVED: "Your payout has been approved",
    PayoutStatus.PAID: "Your payout has been paid",
    PayoutStatus.REJECTED: "Your payout request was rejected",
}


class PayoutNotificationService:

    @staticmethod
    def send_payout_status_email(payout):
        """Email the agent after an admin resolves their payout. Never raises on send failure."""
        try:
            agent = db.session.get(User, payout.user_id)
        except SQLAlchemyError as e:
            current_app.logger.error(f"Failed to load agent for payout {payout.id} notification: {str(e)}")
            return False
        if not agent or not agent.email:
            current_app.logger.error(f"Agent {payout.user_id} for payout {payout.id} has no email")
            return False

        headline = STATUS_HEADLINES.get(payout.status, f"Payout status: {payout.status.value}")
        subject = f"{headline} - {payout.id}"

        rows = [
            ("Payout ID", payout.id),
            ("Amount", payout.amount),
            ("Status", payout.status.value.capitalize()),
        ]
        if payout.transaction_id:
            rows.append(("Transaction ID", payout.transaction_id))
        if payout.paid_at:
            rows.append(("Paid On", payout.paid_at.strftime('%Y-%m-%d %H:%M')))

        table = "".join(
            f'<tr><th style="border:1px solid #ddd; padding:8px; background:#f3f3f3;">{label}</th>'
            f'<td style="border:1px solid #ddd; padding:8px;">{value}</td></tr>'
            for label, value in rows
        )
        footer = (
            "The linked commissions are available again for a new request."
            if payout.status == PayoutStatus.REJECTED
            else "Thank you for partnering with us."
        )

        html_body = f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #222;">
<div style="max-width: 600px; margin: auto; padding: 20px; border: 1px solid #eee;">
    <h1 style="font-size: 20px;">{headline}</h1>
    <p>Dear {agent.display_name},</p>
    <table style="width:100%; border-collapse:collapse; margin-bottom:15px;">{table}</table>
    <p>{footer}</p>
    <div style="color: #888; font-size: 11px; text-align: center;">This is an automated message.</div>
</div>
</body>
</html>
"""
        text_body = f"{headline}\n\nDear {agent.display_name},\n\n" + "\n".join(
            f"{label}: {value}" for label, value in rows
        ) + f"\n\n{footer}\n"

        return send_email(subject, [agent.email], text_body, html=html_body)
