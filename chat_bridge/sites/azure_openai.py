"""Azure OpenAI Studio chat playground (oai.azure.com) selectors.

The playground editor only accepts text through a paste event.  Starting a
new conversation means clearing the chat, which asks for confirmation in a
dialog.
"""

ORIGINS = ("https://oai.azure.com",)
LANDING_URL = "https://oai.azure.com/"

PROMPT_INPUT = '[aria-label="User message"]'
SEND_BUTTON = 'button[data-automation-id="chatControlButton"][aria-label="Send"]'
BUSY_INDICATOR = 'button[data-automation-id="chatControlButton"][aria-label="Stop"]'
CONVERSATION_ROOT = "#chatGptChatRegion"
ANSWER_CONTAINER = ".bubbleContent"
ANSWER_TEXT = "p"
NEW_CHAT_BUTTON = '[data-bi-cn="cg_chatsession_clear-chat"]'
NEW_CHAT_CONFIRM = '[data-bi-cn="cg_clearchatconfirmationdialog_clear"]'
