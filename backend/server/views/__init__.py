from server.views.auth_handlers import login as login
from server.views.auth_handlers import logout as logout
from server.views.auth_handlers import pending_pin as pending_pin
from server.views.auth_handlers import transfer as transfer
from server.views.tree_handlers import handle_tree_request as handle_tree_request
