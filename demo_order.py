from packopt_api.normalizer import OrderLine
from packopt_api.plotting import visualize_plan
from packopt_api.reporting import packing_instructions, print_plan_summary
from packopt_api.service import list_box_types, optimize

if __name__ == "__main__":
    # Default catalog: envelope, small, medium, large, xlarge
    print("Available box types:")
    for bt in list_box_types():
        print(f" - {bt.name}: {bt.inner_length}x{bt.inner_width}x{bt.inner_height}, "
              f"max {bt.max_weight} lbs, ${bt.cost:.2f}")
    print()

    # A mixed order: a fragile mug pair, a book, a phone case and a cable
    order = [
        OrderLine("MUG-01", quantity=2,
                  dimensions={"length": 5, "width": 4, "height": 4.5},
                  weight=0.9, material="ceramic", name="Coffee Mug"),
        OrderLine("BOOK-07", quantity=1,
                  dimensions={"length": 9, "width": 6, "height": 1.5},
                  weight=1.2, category="books", name="Paperback"),
        OrderLine("CASE-12", quantity=3,
                  dimensions={"length": 6, "width": 3.5, "height": 0.6},
                  weight=0.2, material="silicone", name="Phone Case"),
        # No dimensions or weight: the normalizer fills in defaults
        OrderLine("CABLE-3", quantity=2, category="accessories"),
    ]

    plan = optimize(order, destination={"country": "US", "zip": "94107"})

    print("=" * 50)
    print_plan_summary(plan)
    print()
    print(packing_instructions(plan))

    # Visualize
    visualize_plan(plan)
