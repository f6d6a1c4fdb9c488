"""Language-model intent classification for messages the fast path missed."""

import logging

from followup_bot.ai.llm import LLMError, LLMService, extract_json
from followup_bot.models.intent import RawIntent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You classify Slack messages for a bot that tracks investor follow-ups \
for a real estate investment firm. Reply with a single JSON object and nothing else.

Keys:
- "action": one of "schedule_followup", "assign_followup", "log_touchpoint", \
"check_status", "list_overdue", "list_by_status", "list_not_contacted", \
"add_investor", "contact_info", "count_investors", "test_monday", "unknown".
- "investorName": the investor named in the message without leading words like \
"with", "for", "to", "on", "about", "regarding"; null if none.
- "date": the date or time phrase as written ("tomorrow", "Friday at 2pm", \
"in 3 days"); use "this friday" for "this week" or "end of week"; null if none.
- "assignee": the teammate asked to do the follow-up, as written (a name or a \
Slack tag like <@U012ABC>); null if none.
- "assigneeIsSlackTag": true only when assignee is a Slack tag.
- "statusFilter": for list_by_status, one of "Hot Lead", "Warm Prospect", \
"Cold / New Lead", "Committed", "Funded".
- "daysSinceFilter": for list_not_contacted, a number of days (2 weeks = 14, \
a month = 30).
- "contactField": for contact_info, "phone", "email" or "all".
- "confidence": 0 to 1. Use less than 0.5 when the message is not a request \
for the bot.
- "missing_info": names of required fields the message leaves out, from \
"investorName", "assignee", "date". Empty when nothing is missing.

Action guide:
- schedule_followup: set a future follow-up ("follow up with X Friday", \
"remind me to call X Monday").
- assign_followup: ask a teammate to follow up ("tell Dana to call X tomorrow").
- log_touchpoint: a contact already happened ("spoke with X", "had a call with X").
- check_status: the state of one investor ("what's the latest on X").
- list_overdue, list_by_status, list_not_contacted, count_investors: pipeline reports.
- add_investor: new contact details are being shared (a name plus a phone, \
email or LinkedIn URL).
- contact_info: someone's phone number or email.
- test_monday: the board write diagnostic.

Examples:
"can someone reach out to Priya Raman this week" -> \
{"action":"schedule_followup","investorName":"Priya Raman","date":"this friday",\
"assignee":null,"assigneeIsSlackTag":false,"statusFilter":null,"daysSinceFilter":null,\
"contactField":null,"confidence":0.9,"missing_info":[]}
"<@U024BE7LH> please call Ortiz Holdings by Thursday" -> \
{"action":"assign_followup","investorName":"Ortiz Holdings","date":"Thursday",\
"assignee":"<@U024BE7LH>","assigneeIsSlackTag":true,"statusFilter":null,\
"daysSinceFilter":null,"contactField":null,"confidence":0.95,"missing_info":[]}
"who haven't we talked to in 3 weeks" -> \
{"action":"list_not_contacted","investorName":null,"date":null,"assignee":null,\
"assigneeIsSlackTag":false,"statusFilter":null,"daysSinceFilter":21,\
"contactField":null,"confidence":0.9,"missing_info":[]}
"set up a follow-up" -> \
{"action":"schedule_followup","investorName":null,"date":null,"assignee":null,\
"assigneeIsSlackTag":false,"statusFilter":null,"daysSinceFilter":null,\
"contactField":null,"confidence":0.7,"missing_info":["investorName"]}
"haha nice" -> \
{"action":"unknown","investorName":null,"date":null,"assignee":null,\
"assigneeIsSlackTag":false,"statusFilter":null,"daysSinceFilter":null,\
"contactField":null,"confidence":0.1,"missing_info":[]}"""


class IntentParser:
    """Asks the language model to classify a message."""

    def __init__(self, llm: LLMService):
        self.llm = llm

    async def parse(self, text: str) -> RawIntent:
        """Classify a message.

        Never raises: a failed call, an empty reply or unparseable JSON
        all yield an ``unknown`` intent with zero confidence.

        Args:
            text: Normalized message text.

        Returns:
            Unvalidated classifier output.
        """
        text = (text or "").strip()
        if not text:
            return RawIntent.unknown(text)

        try:
            content = await self.llm.complete(SYSTEM_PROMPT, text, max_tokens=400)
        except LLMError as e:
            logger.error(f"Intent classification failed: {e}")
            return RawIntent.unknown(text)

        if not content:
            logger.warning("Empty response from intent classifier")
            return RawIntent.unknown(text)

        data = extract_json(content, dict)
        if data is None:
            logger.warning(f"No JSON found in classifier response: {content[:100]}")
            return RawIntent.unknown(text)

        logger.info(
            f"Parsed intent: action={data.get('action')} "
            f"investor={data.get('investorName')!r} date={data.get('date')!r} "
            f"assignee={data.get('assignee')!r} confidence={data.get('confidence')} "
            f"missing={data.get('missing_info')}"
        )
        return RawIntent(data=data, text=text, source="llm")
