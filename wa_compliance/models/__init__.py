from wa_compliance.models.consent_record import ConsentRecord
from wa_compliance.models.interaction_record import InteractionRecord
from wa_compliance.models.compliance_event import ComplianceEvent
from wa_compliance.models.message_template import MessageTemplate
from wa_compliance.models.processed_webhook_event import ProcessedWebhookEvent
