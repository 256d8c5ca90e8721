from .chart import seed_chart
from .expenses import record_expense, void_expense
from .inventory import (adjust, consume, delete_item, get_stock_level,
                        items_needing_reorder, receive, restore)
from .ledger import (create_and_post, create_entry, delete_account,
                     get_account_balance, post_entry,
                     recompute_account_balance, trial_balance, void_entry)
from .orders import (archive_order, close_order, create_order, delete_order,
                     dispatch_order, mark_delivered, mark_ready_for_dispatch,
                     record_payment, replace_items, start_production,
                     submit_order)
from .production import (allocate_materials, assign_job, cancel_job,
                         complete_job, create_job, delete_consumption,
                         delete_job, record_consumption, reserved_quantity,
                         rework, start_job, submit_for_qc, update_consumption)
from .purchases import (close_purchase_order, create_purchase_order,
                        delete_purchase_order, receive_goods,
                        send_purchase_order)
